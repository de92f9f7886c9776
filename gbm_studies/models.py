"""
Model Construction
==================

부스팅 라이브러리와 선형 모델을 공통 인터페이스로 생성합니다.

지원 백엔드:
- xgboost  : XGBRegressor / XGBClassifier (분위수: reg:quantileerror)
- lightgbm : LGBMRegressor / LGBMClassifier (분위수: objective='quantile')
- catboost : CatBoostRegressor / CatBoostClassifier (분위수: Quantile:alpha=q)
- sklearn  : GradientBoostingRegressor / Classifier (분위수: loss='quantile')

선형 모델은 statsmodels (OLS, QuantReg, Logit)를 사용합니다.
"""

import logging
from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
import xgboost as xgb
import lightgbm as lgb
from catboost import CatBoostRegressor, CatBoostClassifier
from sklearn.ensemble import GradientBoostingRegressor, GradientBoostingClassifier

LOGGER = logging.getLogger(__name__)

BACKEND_LABELS = {
    'xgboost': 'XGBoost',
    'lightgbm': 'LightGBM',
    'catboost': 'CatBoost',
    'sklearn': 'SklearnGBM',
}


# =============================================================================
# Boosters
# =============================================================================

def _xgboost(task, objective, quantile, random_state, params):
    params = dict(params)
    params.setdefault('n_jobs', 1)
    if task == 'classification':
        return xgb.XGBClassifier(random_state=random_state, eval_metric='logloss', **params)
    if objective == 'quantile':
        return xgb.XGBRegressor(
            objective='reg:quantileerror',
            quantile_alpha=quantile,
            random_state=random_state,
            **params
        )
    return xgb.XGBRegressor(random_state=random_state, **params)


def _lightgbm(task, objective, quantile, random_state, params):
    params = dict(params)
    params.setdefault('verbose', -1)
    params.setdefault('n_jobs', 1)
    # max_depth만으로는 리프 수가 제한되지 않으므로 2^depth로 맞춤
    if 'max_depth' in params and 'num_leaves' not in params:
        params['num_leaves'] = max(2, 2 ** int(params['max_depth']))
    if task == 'classification':
        return lgb.LGBMClassifier(random_state=random_state, **params)
    if objective == 'quantile':
        return lgb.LGBMRegressor(objective='quantile', alpha=quantile,
                                 random_state=random_state, **params)
    return lgb.LGBMRegressor(random_state=random_state, **params)


def _catboost(task, objective, quantile, random_state, params):
    params = dict(params)
    # catboost 이름 규칙에 맞춤
    if 'n_estimators' in params:
        params['iterations'] = params.pop('n_estimators')
    if 'max_depth' in params:
        params['depth'] = params.pop('max_depth')
    params.setdefault('verbose', False)
    params.setdefault('allow_writing_files', False)
    params.setdefault('thread_count', 1)
    if task == 'classification':
        return CatBoostClassifier(random_seed=random_state, **params)
    if objective == 'quantile':
        return CatBoostRegressor(loss_function=f'Quantile:alpha={quantile}',
                                 random_seed=random_state, **params)
    return CatBoostRegressor(random_seed=random_state, **params)


def _sklearn(task, objective, quantile, random_state, params):
    if task == 'classification':
        return GradientBoostingClassifier(random_state=random_state, **params)
    if objective == 'quantile':
        return GradientBoostingRegressor(loss='quantile', alpha=quantile,
                                         random_state=random_state, **params)
    return GradientBoostingRegressor(random_state=random_state, **params)


_BUILDERS = {
    'xgboost': _xgboost,
    'lightgbm': _lightgbm,
    'catboost': _catboost,
    'sklearn': _sklearn,
}


def build_booster(
    backend: str,
    task: str = 'regression',
    objective: str = 'mean',
    quantile: Optional[float] = None,
    random_state: int = 42,
    **params
):
    """
    부스팅 모델 생성

    Parameters
    ----------
    backend : str
        'xgboost', 'lightgbm', 'catboost', 'sklearn'
    task : str
        'regression' 또는 'classification'
    objective : str
        'mean' (제곱오차/로지스틱) 또는 'quantile'
    quantile : float, optional
        objective='quantile'일 때의 목표 분위수 (0, 1)
    random_state : int
        랜덤 시드
    **params
        n_estimators, learning_rate, max_depth 등 공통 하이퍼파라미터

    Returns
    -------
    model : 학습 전 sklearn 호환 추정기
    """
    if backend not in _BUILDERS:
        raise ValueError(f"지원하지 않는 backend: {backend} (가능: {sorted(_BUILDERS)})")
    if task not in ('regression', 'classification'):
        raise ValueError(f"지원하지 않는 task: {task}")
    if objective not in ('mean', 'quantile'):
        raise ValueError(f"지원하지 않는 objective: {objective}")

    if objective == 'quantile':
        if task == 'classification':
            raise ValueError("분류 task에는 quantile objective를 사용할 수 없습니다")
        if quantile is None or not 0.0 < quantile < 1.0:
            raise ValueError(f"quantile은 (0, 1) 범위여야 합니다: {quantile}")

    return _BUILDERS[backend](task, objective, quantile, random_state, params)


def predict_scores(model, X, task: str = 'regression') -> np.ndarray:
    """회귀는 예측값, 분류는 양성 클래스 확률"""
    if task == 'classification':
        return np.asarray(model.predict_proba(X))[:, 1]
    return np.asarray(model.predict(X), dtype=float)


def raw_scores(model, X) -> np.ndarray:
    """
    분류 모델의 로짓(margin) 스케일 출력, 회귀 모델은 예측값

    확률 스케일은 시그모이드 자체가 비가법적이므로, 상호작용 분석에는
    margin을 사용해야 가법 모델의 H-statistic이 0에 가깝게 나옵니다.
    """
    if isinstance(model, LinearModel):
        return model.decision_function(X)
    if isinstance(model, xgb.XGBClassifier):
        return np.asarray(model.predict(X, output_margin=True), dtype=float)
    if isinstance(model, lgb.LGBMClassifier):
        return np.asarray(model.predict(X, raw_score=True), dtype=float)
    if isinstance(model, CatBoostClassifier):
        return np.asarray(model.predict(X, prediction_type='RawFormulaVal'), dtype=float)
    if isinstance(model, GradientBoostingClassifier):
        return np.asarray(model.decision_function(X), dtype=float).ravel()
    return np.asarray(model.predict(X), dtype=float)


def normalized_importance(model, feature_names: Sequence[str]) -> pd.Series:
    """
    합이 1이 되도록 정규화한 피처 중요도

    모든 중요도가 0이면 (예: 분할이 없는 트리) 0 벡터를 그대로 반환합니다.
    """
    importances = np.asarray(model.feature_importances_, dtype=float)
    if len(importances) != len(feature_names):
        raise ValueError(
            f"중요도 길이와 피처 수가 일치하지 않습니다: {len(importances)} vs {len(feature_names)}"
        )
    total = importances.sum()
    if total > 0:
        importances = importances / total
    return pd.Series(importances, index=list(feature_names), name='importance')


# =============================================================================
# Linear Models (statsmodels)
# =============================================================================

class LinearModel:
    """
    statsmodels 기반 선형 모델

    Parameters
    ----------
    kind : str, default='ols'
        'ols' (최소제곱), 'quantile' (QuantReg), 'logit' (로지스틱)
    quantile : float, optional
        kind='quantile'일 때 목표 분위수
    interactions : list of tuple, optional
        명시적으로 추가할 곱 항 [('x1', 'x2'), ...]
        'all'이면 모든 피처 쌍

    Attributes
    ----------
    params_ : Series
        추정 계수 (const 포함)
    bse_ : Series
        계수 표준오차
    design_columns_ : list
        설계 행렬 컬럼 (const 제외)
    """

    def __init__(
        self,
        kind: str = 'ols',
        quantile: Optional[float] = None,
        interactions=None
    ):
        if kind not in ('ols', 'quantile', 'logit'):
            raise ValueError(f"지원하지 않는 선형 모델: {kind}")
        if kind == 'quantile' and (quantile is None or not 0.0 < quantile < 1.0):
            raise ValueError(f"quantile은 (0, 1) 범위여야 합니다: {quantile}")

        self.kind = kind
        self.quantile = quantile
        self.interactions = interactions

        self.result_ = None
        self.params_: Optional[pd.Series] = None
        self.bse_: Optional[pd.Series] = None
        self.design_columns_: List[str] = []
        self._pairs: List[Tuple[str, str]] = []

    def _design(self, X) -> pd.DataFrame:
        """설계 행렬 생성 (곱 항 + 상수항)"""
        X = pd.DataFrame(X).copy()
        X.columns = [str(c) for c in X.columns]
        for a, b in self._pairs:
            X[f'{a}:{b}'] = X[a] * X[b]
        return sm.add_constant(X, has_constant='add')

    def _resolve_pairs(self, columns: List[str]) -> List[Tuple[str, str]]:
        if self.interactions is None:
            return []
        if self.interactions == 'all':
            return list(combinations(columns, 2))
        pairs = []
        for a, b in self.interactions:
            a, b = str(a), str(b)
            if a not in columns or b not in columns:
                raise KeyError(f"상호작용 피처가 데이터에 없습니다: ({a}, {b})")
            pairs.append((a, b))
        return pairs

    def fit(self, X, y) -> 'LinearModel':
        X = pd.DataFrame(X)
        y = np.asarray(y, dtype=float).ravel()
        if X.shape[0] != len(y):
            raise ValueError(f"X와 y의 샘플 수가 일치하지 않습니다: {X.shape[0]} vs {len(y)}")

        self._pairs = self._resolve_pairs([str(c) for c in X.columns])
        design = self._design(X)
        self.design_columns_ = [c for c in design.columns if c != 'const']

        if self.kind == 'ols':
            self.result_ = sm.OLS(y, design).fit()
        elif self.kind == 'quantile':
            self.result_ = sm.QuantReg(y, design).fit(q=self.quantile)
        else:
            self.result_ = sm.Logit(y, design).fit(disp=0)

        self.params_ = self.result_.params
        self.bse_ = self.result_.bse
        return self

    def predict(self, X) -> np.ndarray:
        """예측. logit은 양성 클래스 확률"""
        if self.result_ is None:
            raise RuntimeError("모델이 학습되지 않았습니다.")
        return np.asarray(self.result_.predict(self._design(X)), dtype=float)

    def decision_function(self, X) -> np.ndarray:
        """선형 예측자 Xβ (logit은 로짓 스케일)"""
        if self.result_ is None:
            raise RuntimeError("모델이 학습되지 않았습니다.")
        design = self._design(X)
        return np.asarray(design[self.params_.index].values @ self.params_.values, dtype=float)

    def predict_proba(self, X) -> np.ndarray:
        if self.kind != 'logit':
            raise RuntimeError("predict_proba는 logit 모델에서만 사용할 수 있습니다.")
        p = self.predict(X)
        return np.column_stack([1.0 - p, p])

    def summary(self):
        if self.result_ is None:
            raise RuntimeError("모델이 학습되지 않았습니다.")
        return self.result_.summary()

    def describe(self) -> Dict[str, Any]:
        """계수/표준오차 요약 딕셔너리"""
        if self.result_ is None:
            raise RuntimeError("모델이 학습되지 않았습니다.")
        return {
            'kind': self.kind,
            'params': self.params_.to_dict(),
            'bse': self.bse_.to_dict(),
        }
