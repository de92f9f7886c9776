"""
GBM Studies - 그래디언트 부스팅 동작 분석
=========================================

소규모 표 형식 데이터에서 그래디언트 부스팅 모델의 동작을 탐색하는 분석 모음입니다.
각 분석은 동일한 흐름을 따릅니다.

    시뮬레이션(또는 로드) → 학습/테스트 분할 → 모델 학습 → 메트릭 → 진단 플롯

포함된 분석:
- QuantileStudy: 분위수 회귀 (5% / 50% / 95% 조건부 분위수)
- MulticollinearityStudy: 다중공선성에 대한 민감도
- InteractionStudy: 피처 상호작용 포착 능력

모델 내부 구현은 xgboost, lightgbm, catboost, scikit-learn, statsmodels에 위임합니다.

Author: Data Science Team
"""

from .config import (
    StudyConfig,
    QuantileConfig,
    MulticollinearityConfig,
    InteractionConfig,
    load_config,
    set_seed,
)
from .metrics import Evaluator
from .models import build_booster, LinearModel, normalized_importance
from .plotting import StudyVisualizer
from .studies import (
    Study,
    StudyResult,
    QuantileStudy,
    MulticollinearityStudy,
    InteractionStudy,
    STUDIES,
    run_study,
)

__all__ = [
    'StudyConfig',
    'QuantileConfig',
    'MulticollinearityConfig',
    'InteractionConfig',
    'load_config',
    'set_seed',
    'Evaluator',
    'build_booster',
    'LinearModel',
    'normalized_importance',
    'StudyVisualizer',
    'Study',
    'StudyResult',
    'QuantileStudy',
    'MulticollinearityStudy',
    'InteractionStudy',
    'STUDIES',
    'run_study',
]

__version__ = '1.0.0'
