"""분석 모음과 이름 기반 실행"""

from typing import Dict, Optional, Type

from ..config import StudyConfig
from .base import Study, StudyResult
from .quantile import QuantileStudy
from .multicollinearity import MulticollinearityStudy
from .interaction import InteractionStudy

STUDIES: Dict[str, Type[Study]] = {
    QuantileStudy.name: QuantileStudy,
    MulticollinearityStudy.name: MulticollinearityStudy,
    InteractionStudy.name: InteractionStudy,
}


def get_study(name: str) -> Type[Study]:
    if name not in STUDIES:
        raise KeyError(f"알 수 없는 분석: {name} (가능: {sorted(STUDIES)})")
    return STUDIES[name]


def run_study(name: str, config: Optional[StudyConfig] = None, **kwargs) -> StudyResult:
    """이름으로 분석 실행"""
    return get_study(name)(config, **kwargs).run()


__all__ = [
    'Study',
    'StudyResult',
    'QuantileStudy',
    'MulticollinearityStudy',
    'InteractionStudy',
    'STUDIES',
    'get_study',
    'run_study',
]
