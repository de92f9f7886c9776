"""
Data Simulation
===============

정답(ground truth)을 알고 있는 합성 데이터셋.

모든 함수는 피처 컬럼 x1..xk 와 타겟 컬럼 y 를 가진 DataFrame을 반환하며,
같은 random_state 에 대해 항상 동일한 데이터를 생성합니다.

1. simulate_heteroscedastic: 이분산 노이즈 (분위수 회귀용)
   y = 2·sin(x1) + 0.5·x1 + scale(x1)·ε,  scale(x) = base·(1 + slope·x)

2. simulate_correlated: 상관된 피처 (다중공선성용)
   (x1, x2) ~ N(0, [[1, ρ], [ρ, 1]]),  x3 ~ N(0, 1)
   y = β1·x1 + β2·x2 + β3·x3 + ε

3. simulate_interaction: 곱셈 상호작용 (상호작용 포착용)
   η = x1 + x2 + s·x1·x2
   회귀: y = η + ε,  분류: y ~ Bernoulli(sigmoid(η))
"""

from typing import Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats


TARGET = 'y'


def _mean_function(x: np.ndarray) -> np.ndarray:
    return 2.0 * np.sin(x) + 0.5 * x


def noise_scale(x: np.ndarray, noise_base: float = 0.5, noise_slope: float = 0.3) -> np.ndarray:
    """x 위치에서의 노이즈 표준편차"""
    return noise_base * (1.0 + noise_slope * np.asarray(x, dtype=float))


def simulate_heteroscedastic(
    n_samples: int = 2000,
    noise_base: float = 0.5,
    noise_slope: float = 0.3,
    random_state: int = 42
) -> pd.DataFrame:
    """
    이분산 회귀 데이터 생성

    x가 커질수록 노이즈가 커지므로, 평균만 예측하는 모델은 불확실성의
    변화를 표현하지 못합니다. 분위수 회귀가 필요한 대표적 상황입니다.
    """
    rng = np.random.default_rng(random_state)
    x = rng.uniform(0.0, 10.0, size=n_samples)
    eps = rng.standard_normal(n_samples)
    y = _mean_function(x) + noise_scale(x, noise_base, noise_slope) * eps
    return pd.DataFrame({'x1': x, TARGET: y})


def true_quantile(
    x: Union[float, np.ndarray],
    q: float,
    noise_base: float = 0.5,
    noise_slope: float = 0.3
) -> np.ndarray:
    """
    simulate_heteroscedastic 의 참 조건부 분위수

    정규 노이즈이므로 Q(q | x) = mean(x) + scale(x) · Φ⁻¹(q)
    """
    if not 0.0 < q < 1.0:
        raise ValueError(f"q는 (0, 1) 범위여야 합니다: {q}")
    x = np.asarray(x, dtype=float)
    return _mean_function(x) + noise_scale(x, noise_base, noise_slope) * stats.norm.ppf(q)


def simulate_correlated(
    n_samples: int = 2000,
    rho: float = 0.9,
    coefficients: Sequence[float] = (1.0, 1.0, 0.5),
    noise_std: float = 1.0,
    random_state: int = 42
) -> pd.DataFrame:
    """
    x1, x2 가 상관계수 rho 로 상관된 선형 데이터 생성

    rho → 1 이면 x1, x2 의 개별 효과를 구분하기 어려워지고
    선형 회귀 계수의 분산이 1 / (1 - rho²) 배로 증가합니다.
    """
    if not 0.0 <= rho < 1.0:
        raise ValueError(f"rho는 [0, 1) 범위여야 합니다: {rho}")
    if len(coefficients) != 3:
        raise ValueError(f"coefficients는 3개여야 합니다: {coefficients}")

    rng = np.random.default_rng(random_state)
    cov = np.array([[1.0, rho], [rho, 1.0]])
    x12 = rng.multivariate_normal(mean=[0.0, 0.0], cov=cov, size=n_samples)
    x3 = rng.standard_normal(n_samples)

    X = np.column_stack([x12, x3])
    y = X @ np.asarray(coefficients, dtype=float) + noise_std * rng.standard_normal(n_samples)

    return pd.DataFrame({'x1': X[:, 0], 'x2': X[:, 1], 'x3': X[:, 2], TARGET: y})


def simulate_interaction(
    n_samples: int = 2000,
    strength: float = 2.0,
    n_noise_features: int = 3,
    task: str = 'regression',
    noise_std: float = 0.5,
    random_state: int = 42
) -> pd.DataFrame:
    """
    x1 × x2 상호작용을 가진 데이터 생성

    x3 이후의 피처는 타겟과 무관한 노이즈입니다.
    """
    if task not in ('regression', 'classification'):
        raise ValueError(f"지원하지 않는 task: {task}")
    if n_noise_features < 0:
        raise ValueError(f"n_noise_features는 0 이상이어야 합니다: {n_noise_features}")

    rng = np.random.default_rng(random_state)
    n_features = 2 + n_noise_features
    X = rng.uniform(-2.0, 2.0, size=(n_samples, n_features))

    eta = X[:, 0] + X[:, 1] + strength * X[:, 0] * X[:, 1]

    if task == 'regression':
        y = eta + noise_std * rng.standard_normal(n_samples)
    else:
        p = 1.0 / (1.0 + np.exp(-eta))
        y = rng.binomial(1, p).astype(int)

    df = pd.DataFrame(X, columns=[f'x{i + 1}' for i in range(n_features)])
    df[TARGET] = y
    return df
