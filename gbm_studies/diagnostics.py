"""
Multicollinearity Diagnostics
=============================

VIF_j = 1 / (1 - R²_j)
    R²_j: 피처 j를 나머지 피처로 회귀했을 때의 결정계수

경험적 기준: VIF > 5 주의, VIF > 10 심각
"""

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.outliers_influence import variance_inflation_factor


def vif_table(X) -> pd.DataFrame:
    """
    피처별 VIF 계산

    상수항을 추가한 설계 행렬에서 계산하며, 상수항 자체는 결과에서 제외합니다.
    완전 공선성(R² = 1)인 피처의 VIF는 inf 입니다.
    """
    X = pd.DataFrame(X)
    if X.shape[1] < 2:
        raise ValueError("VIF 계산에는 최소 2개의 피처가 필요합니다")

    design = sm.add_constant(X.astype(float), has_constant='add')
    values = design.values

    with np.errstate(divide='ignore'):
        vif = [variance_inflation_factor(values, i) for i in range(1, design.shape[1])]

    return pd.DataFrame({
        'feature': [str(c) for c in X.columns],
        'VIF': vif,
    })


def correlation_matrix(X, method: str = 'pearson') -> pd.DataFrame:
    """피처 상관행렬"""
    return pd.DataFrame(X).corr(method=method)


def condition_number(X) -> float:
    """표준화한 피처 행렬의 조건수 (클수록 공선성이 강함)"""
    X = np.asarray(X, dtype=float)
    std = X.std(axis=0)
    std[std == 0] = 1.0
    Z = (X - X.mean(axis=0)) / std
    return float(np.linalg.cond(Z))
