"""
Evaluation Metrics
==================

회귀 / 분류 / 분위수 예측 평가.

- RMSE = sqrt(mean((y - ŷ)²))
- AUC  = ROC 곡선 아래 면적
- Pinball(q) = mean(max(q·r, (q - 1)·r)),  r = y - ŷ
- Coverage = P(lower ≤ y ≤ upper)
"""

from typing import Dict, Mapping, Tuple

import numpy as np
from sklearn.metrics import (
    mean_squared_error,
    mean_absolute_error,
    mean_pinball_loss,
    r2_score,
    roc_auc_score,
    log_loss,
    accuracy_score,
)


def _clean(*arrays) -> Tuple[np.ndarray, ...]:
    """flatten 후 어느 하나라도 NaN인 위치 제거"""
    arrays = [np.asarray(a, dtype=float).flatten() for a in arrays]
    mask = np.ones(len(arrays[0]), dtype=bool)
    for a in arrays:
        if len(a) != len(arrays[0]):
            raise ValueError(f"배열 길이가 일치하지 않습니다: {[len(x) for x in arrays]}")
        mask &= ~np.isnan(a)
    return tuple(a[mask] for a in arrays)


class Evaluator:
    """모델 평가"""

    @staticmethod
    def rmse(y_true, y_pred) -> float:
        y_true, y_pred = _clean(y_true, y_pred)
        if len(y_true) == 0:
            return np.nan
        return float(np.sqrt(mean_squared_error(y_true, y_pred)))

    @staticmethod
    def mae(y_true, y_pred) -> float:
        y_true, y_pred = _clean(y_true, y_pred)
        if len(y_true) == 0:
            return np.nan
        return float(mean_absolute_error(y_true, y_pred))

    @staticmethod
    def auc(y_true, y_score) -> float:
        """ROC AUC. 클래스가 하나뿐이면 정의되지 않으므로 NaN"""
        y_true, y_score = _clean(y_true, y_score)
        if len(np.unique(y_true)) < 2:
            return np.nan
        return float(roc_auc_score(y_true, y_score))

    @staticmethod
    def pinball_loss(y_true, y_pred, q: float) -> float:
        if not 0.0 < q < 1.0:
            raise ValueError(f"q는 (0, 1) 범위여야 합니다: {q}")
        y_true, y_pred = _clean(y_true, y_pred)
        if len(y_true) == 0:
            return np.nan
        return float(mean_pinball_loss(y_true, y_pred, alpha=q))

    @staticmethod
    def coverage(y_true, lower, upper) -> float:
        """닫힌 구간 [lower, upper] 안에 들어간 비율"""
        y_true, lower, upper = _clean(y_true, lower, upper)
        if len(y_true) == 0:
            return np.nan
        return float(np.mean((y_true >= lower) & (y_true <= upper)))

    @staticmethod
    def interval_width(lower, upper) -> float:
        lower, upper = _clean(lower, upper)
        if len(lower) == 0:
            return np.nan
        return float(np.mean(upper - lower))

    @staticmethod
    def compute_regression_metrics(y_true, y_pred) -> Dict[str, float]:
        """회귀 메트릭 계산"""
        y_true, y_pred = _clean(y_true, y_pred)

        if len(y_true) == 0:
            return {'RMSE': np.nan, 'MAE': np.nan, 'R2': np.nan}

        return {
            'RMSE': float(np.sqrt(mean_squared_error(y_true, y_pred))),
            'MAE': float(mean_absolute_error(y_true, y_pred)),
            'R2': float(r2_score(y_true, y_pred)) if len(y_true) > 1 else np.nan,
        }

    @staticmethod
    def compute_classification_metrics(y_true, y_proba, threshold: float = 0.5) -> Dict[str, float]:
        """
        분류 메트릭 계산

        y_proba는 양성 클래스 확률
        """
        y_true, y_proba = _clean(y_true, y_proba)

        if len(y_true) == 0:
            return {'AUC': np.nan, 'LogLoss': np.nan, 'Accuracy': np.nan}

        y_proba = np.clip(y_proba, 1e-15, 1 - 1e-15)
        return {
            'AUC': Evaluator.auc(y_true, y_proba),
            'LogLoss': float(log_loss(y_true, y_proba, labels=[0, 1])),
            'Accuracy': float(accuracy_score(y_true, (y_proba >= threshold).astype(int))),
        }

    @staticmethod
    def compute_quantile_metrics(y_true, preds_by_q: Mapping[float, np.ndarray]) -> Dict[str, float]:
        """
        분위수 예측 메트릭 계산

        Parameters
        ----------
        y_true : array-like
            실제값
        preds_by_q : dict
            {분위수: 예측값} 딕셔너리

        Returns
        -------
        metrics : dict
            'Pinball_q0.05' 형식의 분위수별 손실과,
            가장 바깥 분위수 쌍의 'Coverage', 'Width'
            (명목 커버리지는 'Nominal')
        """
        if len(preds_by_q) == 0:
            raise ValueError("preds_by_q가 비어 있습니다")

        quantiles = sorted(preds_by_q)
        metrics = {}
        for q in quantiles:
            metrics[f'Pinball_q{q:g}'] = Evaluator.pinball_loss(y_true, preds_by_q[q], q)

        if len(quantiles) >= 2:
            q_lo, q_hi = quantiles[0], quantiles[-1]
            lower, upper = preds_by_q[q_lo], preds_by_q[q_hi]
            metrics['Coverage'] = Evaluator.coverage(y_true, lower, upper)
            metrics['Nominal'] = q_hi - q_lo
            metrics['Width'] = Evaluator.interval_width(lower, upper)

        return metrics
