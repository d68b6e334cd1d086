from __future__ import annotations

from typing import Dict, Optional, Type, Union

import numpy as np

from ..channel import Channel
from ..config import ConvTestConfigEntity, CriterionConfig
from ..events import CheckpointErrorEvent, Reporter, emit_event
from .base import ConvergenceTest
from .norm_disp_unbalance import NormDispAndUnbalance, NormDispOrUnbalance

_BY_CLASS_TAG: Dict[int, Type[ConvergenceTest]] = {}
_BY_CONFIG_TYPE: Dict[str, Type[ConvergenceTest]] = {}

# Header record: class_tag, db_tag
HEADER_SIZE = 2


def register_criterion(cls: Type[ConvergenceTest]) -> Type[ConvergenceTest]:
    """Register a criterion class under its class tag (and config type, if any)."""
    tag = int(cls.class_tag)
    existing = _BY_CLASS_TAG.get(tag)
    assert existing is None or existing is cls, f"class_tag {tag} already registered to {existing.__name__}"
    _BY_CLASS_TAG[tag] = cls
    config_type = getattr(cls, "config_type", "")
    if config_type:
        _BY_CONFIG_TYPE[config_type] = cls
    return cls


register_criterion(NormDispOrUnbalance)
register_criterion(NormDispAndUnbalance)


def registered_class_tags() -> Dict[int, str]:
    return {tag: cls.__name__ for tag, cls in sorted(_BY_CLASS_TAG.items())}


def create_criterion(class_tag: int, *, reporter: Optional[Reporter] = None) -> ConvergenceTest:
    """Default-construct the criterion registered under `class_tag`."""
    cls = _BY_CLASS_TAG.get(int(class_tag))
    assert cls is not None, f"no criterion registered for class_tag {class_tag}"
    return cls(reporter=reporter)


def criterion_from_config(
    config: Union[CriterionConfig, ConvTestConfigEntity],
    *,
    reporter: Optional[Reporter] = None,
) -> ConvergenceTest:
    """Build the criterion selected by `config.type`."""
    crit_cfg = config.criterion if isinstance(config, ConvTestConfigEntity) else config
    cls = _BY_CONFIG_TYPE.get(crit_cfg.type)
    assert cls is not None, f"unknown criterion type: {crit_cfg.type}"
    return cls(crit_cfg, reporter=reporter)


def save_criterion(criterion: ConvergenceTest, c_tag: int, channel: Channel) -> int:
    """Write a header identifying the variant at `c_tag`, then the criterion's record at `c_tag + 1`."""
    header = np.array([criterion.class_tag, criterion.db_tag], dtype=np.float64)
    res = channel.send_vector(criterion.db_tag, c_tag, header)
    if res < 0:
        criterion.reporter(CheckpointErrorEvent(
            subject_id=criterion.name,
            operation="save_criterion",
            db_tag=criterion.db_tag,
            c_tag=c_tag,
            result=res,
            message=f"save_criterion() - failed to send header for {criterion.name}",
        ))
        return res
    return criterion.send_self(c_tag + 1, channel)


def restore_criterion(
    db_tag: int,
    c_tag: int,
    channel: Channel,
    *,
    reporter: Optional[Reporter] = None,
) -> Optional[ConvergenceTest]:
    """Rebuild the criterion saved by `save_criterion`; None when the header cannot be read."""
    header = np.zeros(HEADER_SIZE, dtype=np.float64)
    res = channel.recv_vector(db_tag, c_tag, header)
    if res < 0 or int(header[0]) not in _BY_CLASS_TAG:
        (reporter or emit_event)(CheckpointErrorEvent(
            operation="restore_criterion",
            db_tag=db_tag,
            c_tag=c_tag,
            result=res if res < 0 else -1,
            message="restore_criterion() - missing or unknown criterion header",
        ))
        return None
    criterion = create_criterion(int(header[0]), reporter=reporter)
    criterion.db_tag = int(db_tag)
    criterion.recv_self(c_tag + 1, channel)
    return criterion
