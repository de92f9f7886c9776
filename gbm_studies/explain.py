"""
Interaction & Importance Analysis
=================================

1. Partial Dependence (brute force):
   PD_S(x_S) = (1/n) Σ_i f(x_S, x_{-S}^(i))

2. Friedman H-statistic (피처 쌍 j, k):
   H²_jk = Σ_i [PD_jk(x_ij, x_ik) - PD_j(x_ij) - PD_k(x_ik)]² / Σ_i PD_jk(x_ij, x_ik)²
   (각 PD는 평균 0으로 중심화)
   0이면 상호작용 없음, 1이면 결합 효과가 전부 상호작용

3. SHAP:
   - shap.TreeExplainer 로 평균 |SHAP| 중요도
   - xgboost 내장 pred_interactions 로 SHAP 상호작용 행렬
"""

import logging
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import shap
import xgboost as xgb
from sklearn.inspection import permutation_importance

from .models import raw_scores

LOGGER = logging.getLogger(__name__)

PredictFn = Callable[[pd.DataFrame], np.ndarray]


def _predictor(model, predict_fn: Optional[PredictFn]) -> PredictFn:
    if predict_fn is not None:
        return predict_fn
    return lambda X: raw_scores(model, X)


def _column_index(X: pd.DataFrame, feature: Union[int, str]) -> int:
    if isinstance(feature, (int, np.integer)):
        if not 0 <= feature < X.shape[1]:
            raise IndexError(f"피처 인덱스 범위 초과: {feature}")
        return int(feature)
    if feature not in X.columns:
        raise KeyError(f"피처가 데이터에 없습니다: {feature}")
    return list(X.columns).index(feature)


def partial_dependence_grid(
    model,
    X,
    features: Sequence[Union[int, str]],
    grid_size: int = 20,
    max_background: int = 200,
    random_state: int = 42,
    predict_fn: Optional[PredictFn] = None
) -> Tuple:
    """
    1-D / 2-D Partial Dependence 계산

    Parameters
    ----------
    model : 학습된 모델
    X : DataFrame
        배경 데이터 (max_background 행으로 샘플링)
    features : list
        1개 또는 2개의 피처 (이름 또는 인덱스)
    grid_size : int
        피처별 그리드 점 수 (5~95 백분위 범위)

    Returns
    -------
    1-D: (grid, pd_values)
    2-D: (grid_0, grid_1, pd_matrix)  pd_matrix[a, b] = PD(grid_0[a], grid_1[b])
    """
    X = pd.DataFrame(X)
    if len(features) not in (1, 2):
        raise ValueError(f"features는 1개 또는 2개여야 합니다: {features}")

    predict = _predictor(model, predict_fn)
    rng = np.random.default_rng(random_state)
    if len(X) > max_background:
        X = X.iloc[rng.choice(len(X), size=max_background, replace=False)]
    background = X.to_numpy(dtype=float)
    n = len(background)

    idx = [_column_index(X, f) for f in features]
    grids = [
        np.linspace(*np.percentile(background[:, j], [5, 95]), grid_size)
        for j in idx
    ]

    if len(idx) == 1:
        j = idx[0]
        stacked = np.tile(background, (grid_size, 1))
        stacked[:, j] = np.repeat(grids[0], n)
        preds = predict(pd.DataFrame(stacked, columns=X.columns))
        return grids[0], preds.reshape(grid_size, n).mean(axis=1)

    j, k = idx
    g0, g1 = np.meshgrid(grids[0], grids[1], indexing='ij')
    points = np.column_stack([g0.ravel(), g1.ravel()])

    stacked = np.tile(background, (len(points), 1))
    stacked[:, j] = np.repeat(points[:, 0], n)
    stacked[:, k] = np.repeat(points[:, 1], n)
    preds = predict(pd.DataFrame(stacked, columns=X.columns))
    pd_matrix = preds.reshape(len(points), n).mean(axis=1).reshape(grid_size, grid_size)
    return grids[0], grids[1], pd_matrix


def _pd_at_samples(predict: PredictFn, sample: np.ndarray, columns, cols: Sequence[int]) -> np.ndarray:
    """샘플 각 행의 값 x_i,cols 에서의 PD (배경 = 샘플 자체)"""
    m = len(sample)
    stacked = np.tile(sample, (m, 1))
    for c in cols:
        stacked[:, c] = np.repeat(sample[:, c], m)
    preds = predict(pd.DataFrame(stacked, columns=columns))
    return preds.reshape(m, m).mean(axis=1)


def h_statistic(
    model,
    X,
    feature_j: Union[int, str],
    feature_k: Union[int, str],
    n_samples: int = 60,
    random_state: int = 42,
    predict_fn: Optional[PredictFn] = None
) -> float:
    """
    Friedman 쌍별 H² 통계량

    비용은 O(n_samples²) 예측 3회입니다.
    상수 모델처럼 결합 PD의 분산이 0이면 0을 반환합니다.
    """
    X = pd.DataFrame(X)
    j, k = _column_index(X, feature_j), _column_index(X, feature_k)
    if j == k:
        raise ValueError("서로 다른 두 피처가 필요합니다")

    predict = _predictor(model, predict_fn)
    rng = np.random.default_rng(random_state)
    if len(X) > n_samples:
        X = X.iloc[rng.choice(len(X), size=n_samples, replace=False)]
    sample = X.to_numpy(dtype=float)

    pd_j = _pd_at_samples(predict, sample, X.columns, [j])
    pd_k = _pd_at_samples(predict, sample, X.columns, [k])
    pd_jk = _pd_at_samples(predict, sample, X.columns, [j, k])

    pd_j -= pd_j.mean()
    pd_k -= pd_k.mean()
    pd_jk -= pd_jk.mean()

    denominator = np.sum(pd_jk ** 2)
    if denominator <= 1e-12:
        return 0.0

    h2 = np.sum((pd_jk - pd_j - pd_k) ** 2) / denominator
    return float(np.clip(h2, 0.0, 1.0))


def shap_importance(model, X) -> pd.Series:
    """
    평균 |SHAP| 피처 중요도 (TreeExplainer)

    이진 분류에서 클래스별 결과가 나오면 양성 클래스를 사용합니다.
    """
    X = pd.DataFrame(X)
    explainer = shap.TreeExplainer(model)
    values = explainer.shap_values(X)

    if isinstance(values, list):
        values = values[-1]
    values = np.asarray(values)
    if values.ndim == 3:
        values = values[:, :, -1]

    importance = np.abs(values).mean(axis=0)
    return pd.Series(importance, index=list(X.columns), name='mean_abs_shap').sort_values(ascending=False)


def xgb_interaction_matrix(model, X) -> pd.DataFrame:
    """
    xgboost SHAP 상호작용 값의 평균 절댓값 행렬

    대각 성분은 주효과, 비대각 성분은 쌍별 상호작용(대칭, 절반씩 분배)입니다.
    """
    if not isinstance(model, (xgb.XGBRegressor, xgb.XGBClassifier)):
        raise TypeError(f"xgboost 모델이 필요합니다: {type(model).__name__}")

    X = pd.DataFrame(X)
    booster = model.get_booster()
    interactions = booster.predict(xgb.DMatrix(X), pred_interactions=True)

    # 마지막 행/열은 bias
    matrix = np.abs(interactions[:, :-1, :-1]).mean(axis=0)
    names = list(X.columns)
    return pd.DataFrame(matrix, index=names, columns=names)


def permutation_importance_table(
    model,
    X,
    y,
    scoring: str = 'neg_root_mean_squared_error',
    n_repeats: int = 5,
    random_state: int = 42
) -> pd.DataFrame:
    """sklearn permutation importance 결과를 DataFrame으로 정리"""
    X = pd.DataFrame(X)
    result = permutation_importance(
        model, X, y,
        scoring=scoring,
        n_repeats=n_repeats,
        random_state=random_state
    )
    return pd.DataFrame({
        'feature': list(X.columns),
        'importance_mean': result.importances_mean,
        'importance_std': result.importances_std,
    }).sort_values('importance_mean', ascending=False).reset_index(drop=True)
