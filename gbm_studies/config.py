"""
Configuration
=============

실험 설정 데이터클래스와 JSON 설정 로더.

각 분석(Study)은 공통 설정 StudyConfig를 상속한 전용 설정을 가집니다.
JSON 파일의 리스트 값은 튜플로 변환되며, 알 수 없는 키는 오류로 처리합니다.
"""

import json
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Tuple, Type, Union, get_args, get_origin

import numpy as np


BOOSTING_BACKENDS = ('xgboost', 'lightgbm', 'catboost', 'sklearn')
TASKS = ('regression', 'classification')


def set_seed(seed: int = 42):
    """재현성을 위한 시드 설정"""
    np.random.seed(seed)


# =============================================================================
# Study Configs
# =============================================================================

@dataclass
class StudyConfig:
    """공통 실험 설정"""
    n_samples: int = 2000
    test_size: float = 0.25
    random_seed: int = 42

    # 출력
    output_dir: str = 'outputs'
    dpi: int = 150
    verbose: bool = True

    # 부스팅 공통 하이퍼파라미터
    backends: Tuple[str, ...] = ('xgboost', 'lightgbm', 'sklearn')
    n_estimators: int = 300
    learning_rate: float = 0.05
    max_depth: int = 3

    def validate(self) -> 'StudyConfig':
        """설정값 검증. 잘못된 값은 필드명을 포함한 ValueError"""
        if not 0.0 < self.test_size < 1.0:
            raise ValueError(f"test_size는 (0, 1) 범위여야 합니다: {self.test_size}")
        if self.n_samples < 20:
            raise ValueError(f"n_samples는 20 이상이어야 합니다: {self.n_samples}")
        if self.n_estimators < 1:
            raise ValueError(f"n_estimators는 1 이상이어야 합니다: {self.n_estimators}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth는 1 이상이어야 합니다: {self.max_depth}")
        if not self.backends:
            raise ValueError("backends가 비어 있습니다")
        unknown = [b for b in self.backends if b not in BOOSTING_BACKENDS]
        if unknown:
            raise ValueError(f"backends에 지원하지 않는 값이 있습니다: {unknown}")
        return self

    def booster_params(self) -> Dict[str, Any]:
        """build_booster에 전달할 공통 하이퍼파라미터"""
        return {
            'n_estimators': self.n_estimators,
            'learning_rate': self.learning_rate,
            'max_depth': self.max_depth,
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QuantileConfig(StudyConfig):
    """분위수 회귀 실험 설정"""
    quantiles: Tuple[float, ...] = (0.05, 0.5, 0.95)

    # 이분산 노이즈: scale(x) = noise_base * (1 + noise_slope * x)
    noise_base: float = 0.5
    noise_slope: float = 0.3

    # 분위수 교차(crossing) 시 행 단위 정렬
    fix_crossing: bool = True

    def validate(self) -> 'QuantileConfig':
        super().validate()
        if len(self.quantiles) < 2:
            raise ValueError("quantiles는 최소 2개가 필요합니다")
        for q in self.quantiles:
            if not 0.0 < q < 1.0:
                raise ValueError(f"quantiles의 값은 (0, 1) 범위여야 합니다: {q}")
        if any(a >= b for a, b in zip(self.quantiles, self.quantiles[1:])):
            raise ValueError(f"quantiles는 엄격한 오름차순이어야 합니다: {self.quantiles}")
        if self.noise_base <= 0:
            raise ValueError(f"noise_base는 양수여야 합니다: {self.noise_base}")
        if self.noise_slope < 0:
            raise ValueError(f"noise_slope는 0 이상이어야 합니다: {self.noise_slope}")
        return self


@dataclass
class MulticollinearityConfig(StudyConfig):
    """다중공선성 실험 설정"""
    correlations: Tuple[float, ...] = (0.0, 0.5, 0.9, 0.99)
    n_repeats: int = 20

    # y = 1.0*x1 + 1.0*x2 + 0.5*x3 + noise
    coefficients: Tuple[float, ...] = (1.0, 1.0, 0.5)
    noise_std: float = 1.0

    def validate(self) -> 'MulticollinearityConfig':
        super().validate()
        if not self.correlations:
            raise ValueError("correlations가 비어 있습니다")
        for rho in self.correlations:
            if not 0.0 <= rho < 1.0:
                raise ValueError(f"correlations의 값은 [0, 1) 범위여야 합니다: {rho}")
        if self.n_repeats < 2:
            raise ValueError(f"n_repeats는 2 이상이어야 합니다: {self.n_repeats}")
        if len(self.coefficients) != 3:
            raise ValueError(f"coefficients는 (x1, x2, x3) 3개여야 합니다: {self.coefficients}")
        if self.noise_std < 0:
            raise ValueError(f"noise_std는 0 이상이어야 합니다: {self.noise_std}")
        return self


@dataclass
class InteractionConfig(StudyConfig):
    """피처 상호작용 실험 설정"""
    task: str = 'regression'
    interaction_strength: float = 2.0
    n_noise_features: int = 3

    # H-statistic 계산에 사용할 샘플 수 (O(n²) 예측)
    h_stat_samples: int = 60

    # 상호작용을 측정할 피처 쌍과 기준선(노이즈) 쌍
    interaction_pair: Tuple[str, ...] = ('x1', 'x2')
    reference_pair: Tuple[str, ...] = ('x3', 'x4')

    def validate(self) -> 'InteractionConfig':
        super().validate()
        if self.task not in TASKS:
            raise ValueError(f"task는 {TASKS} 중 하나여야 합니다: {self.task}")
        if self.n_noise_features < 2:
            # 노이즈 쌍(x3, x4)의 H-statistic을 기준선으로 사용
            raise ValueError(f"n_noise_features는 2 이상이어야 합니다: {self.n_noise_features}")
        for name in ('interaction_pair', 'reference_pair'):
            pair = getattr(self, name)
            if len(pair) != 2 or pair[0] == pair[1]:
                raise ValueError(f"{name}는 서로 다른 2개의 피처여야 합니다: {pair}")
        if self.h_stat_samples < 10:
            raise ValueError(f"h_stat_samples는 10 이상이어야 합니다: {self.h_stat_samples}")
        if self.max_depth < 2:
            # 깊이 1 부스팅은 가법 기준 모델로 따로 학습하므로 비교 대상은 깊이 2 이상
            raise ValueError(f"max_depth는 2 이상이어야 합니다: {self.max_depth}")
        return self


CONFIG_TYPES: Dict[str, Type[StudyConfig]] = {
    'base': StudyConfig,
    'quantile': QuantileConfig,
    'multicollinearity': MulticollinearityConfig,
    'interaction': InteractionConfig,
}


# =============================================================================
# Loading
# =============================================================================

def _coerce(name: str, value: Any, expected) -> Any:
    """JSON 값을 필드 타입으로 변환. 맞지 않으면 필드명을 포함한 ValueError"""
    if get_origin(expected) is tuple:
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"{name}는 리스트여야 합니다: {value!r}")
        item_type = get_args(expected)[0]
        return tuple(_coerce(name, v, item_type) for v in value)

    # bool은 int의 하위 클래스이므로 먼저 구분
    if expected is bool:
        ok = isinstance(value, bool)
    elif expected is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif expected is float:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        value = float(value) if ok else value
    else:
        ok = isinstance(value, expected)

    if not ok:
        raise ValueError(f"{name}는 {expected.__name__} 타입이어야 합니다: {value!r}")
    return value


def config_from_dict(values: Dict[str, Any], kind: str = 'base') -> StudyConfig:
    """딕셔너리로부터 설정 생성 (리스트 → 튜플)"""
    if kind not in CONFIG_TYPES:
        raise ValueError(f"알 수 없는 설정 종류: {kind}")
    config_cls = CONFIG_TYPES[kind]

    allowed = {f.name for f in fields(config_cls)}
    unknown = sorted(set(values) - allowed)
    if unknown:
        raise ValueError(f"{config_cls.__name__}에 없는 설정 키: {unknown}")

    types = {f.name: f.type for f in fields(config_cls)}
    kwargs = {k: _coerce(k, v, types[k]) for k, v in values.items()}
    return config_cls(**kwargs).validate()


def load_config(path: Union[str, Path], kind: str = 'base') -> StudyConfig:
    """
    JSON 설정 파일 로드

    Parameters
    ----------
    path : str or Path
        JSON 파일 경로. 최상위는 객체여야 함
    kind : str
        'base', 'quantile', 'multicollinearity', 'interaction'

    Returns
    -------
    config : StudyConfig
        검증된 설정 객체
    """
    with open(path, 'r', encoding='utf-8') as f:
        values = json.load(f)

    if not isinstance(values, dict):
        raise ValueError(f"설정 파일의 최상위는 JSON 객체여야 합니다: {path}")

    return config_from_dict(values, kind)
