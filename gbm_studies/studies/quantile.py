"""
Quantile Regression Study
=========================

이분산 데이터에서 조건부 분위수(기본 5% / 50% / 95%)를 예측합니다.

비교 모델:
- 부스팅: 백엔드별로 분위수마다 모델 1개 (pinball loss 최적화)
- 선형: statsmodels QuantReg

평가:
- 분위수별 pinball loss
- 바깥 분위수 구간의 경험적 커버리지 (명목: q_hi - q_lo) 와 평균 폭
- 중앙값 예측의 RMSE
- 분위수 교차(crossing) 비율: 독립 학습된 모델은 q_lo > q_hi 가 될 수 있음
"""

from typing import Dict

import numpy as np
import pandas as pd

from ..config import QuantileConfig
from ..metrics import Evaluator
from ..models import BACKEND_LABELS, LinearModel, build_booster
from ..simulate import simulate_heteroscedastic, true_quantile
from .base import Study, StudyResult


def crossing_rate(preds_by_q: Dict[float, np.ndarray]) -> float:
    """인접 분위수 예측이 역전된 행의 비율"""
    quantiles = sorted(preds_by_q)
    stacked = np.column_stack([preds_by_q[q] for q in quantiles])
    return float(np.mean(np.any(np.diff(stacked, axis=1) < 0, axis=1)))


def fix_crossing(preds_by_q: Dict[float, np.ndarray]) -> Dict[float, np.ndarray]:
    """행 단위 정렬로 분위수 단조성 복원 (rearrangement)"""
    quantiles = sorted(preds_by_q)
    stacked = np.sort(np.column_stack([preds_by_q[q] for q in quantiles]), axis=1)
    return {q: stacked[:, i] for i, q in enumerate(quantiles)}


class QuantileStudy(Study):
    """분위수 회귀 분석"""

    name = 'quantile'
    title = 'Quantile Regression Study'
    config_cls = QuantileConfig
    supports_data = True

    def simulate(self) -> pd.DataFrame:
        cfg = self.config
        return simulate_heteroscedastic(
            n_samples=cfg.n_samples,
            noise_base=cfg.noise_base,
            noise_slope=cfg.noise_slope,
            random_state=cfg.random_seed
        )

    def _median_quantile(self) -> float:
        quantiles = np.asarray(self.config.quantiles)
        return float(quantiles[np.argmin(np.abs(quantiles - 0.5))])

    def _evaluate(self, name, model_type, y_test, preds_by_q, raw_crossing) -> Dict:
        metrics = Evaluator.compute_quantile_metrics(y_test, preds_by_q)
        pinballs = [v for k, v in metrics.items() if k.startswith('Pinball_')]
        return {
            'Model': name,
            'Type': model_type,
            **metrics,
            'Pinball_Mean': float(np.mean(pinballs)),
            'RMSE_Median': Evaluator.rmse(y_test, preds_by_q[self._median_quantile()]),
            'Crossing': raw_crossing,
        }

    def _run(self) -> StudyResult:
        cfg = self.config

        # 1. 데이터
        self._step(1, "Loading data" if self.data is not None else "Simulating heteroscedastic data")
        df = self.load_or_simulate()

        # 2. 분할
        self._step(2, "Splitting data")
        split = self.split(df)
        y_test = split.y_test.to_numpy(dtype=float)

        # 3. 학습 및 예측
        self._step(3, "Training quantile models")
        raw_predictions = {}

        for backend in cfg.backends:
            label = BACKEND_LABELS[backend]
            preds = {}
            for q in cfg.quantiles:
                model = build_booster(
                    backend,
                    objective='quantile',
                    quantile=q,
                    random_state=cfg.random_seed,
                    **cfg.booster_params()
                )
                model.fit(split.X_train, split.y_train)
                preds[q] = np.asarray(model.predict(split.X_test), dtype=float)
            raw_predictions[label] = ('Boosting', preds)
            self._info(f"{label}: fitted {len(cfg.quantiles)} quantiles")

        linear_preds = {}
        for q in cfg.quantiles:
            linear = LinearModel(kind='quantile', quantile=q).fit(split.X_train, split.y_train)
            linear_preds[q] = linear.predict(split.X_test)
        raw_predictions['LinearQuantReg'] = ('Linear', linear_preds)
        self._info(f"LinearQuantReg: fitted {len(cfg.quantiles)} quantiles")

        # 4. 평가
        self._step(4, "Evaluating pinball loss and coverage")
        rows = []
        predictions = {}
        for name, (model_type, preds) in raw_predictions.items():
            raw_crossing = crossing_rate(preds)
            if cfg.fix_crossing:
                preds = fix_crossing(preds)
            predictions[name] = preds

            row = self._evaluate(name, model_type, y_test, preds, raw_crossing)
            rows.append(row)
            self._info(
                f"{name}: pinball={row['Pinball_Mean']:.4f}, "
                f"coverage={row['Coverage']:.3f} (nominal {row['Nominal']:.2f}), "
                f"crossing={raw_crossing:.3f}"
            )

        metrics = pd.DataFrame(rows).sort_values('Pinball_Mean').reset_index(drop=True)

        # 5. 플롯
        self._step(5, "Plotting quantile bands")
        x_plot = split.X_test.iloc[:, 0].to_numpy(dtype=float)

        true_q = None
        if self.data is None:
            true_q = {
                q: true_quantile(x_plot, q, cfg.noise_base, cfg.noise_slope)
                for q in cfg.quantiles
            }

        figures = []
        fig = self.visualizer.plot_quantile_bands(
            x_plot, y_test, predictions, true_quantiles=true_q,
            title=f"Quantile Regression Bands ({', '.join(f'q{q:g}' for q in cfg.quantiles)})"
        )
        figures.append(self.visualizer.save(fig, 'quantile_bands'))

        fig = self.visualizer.plot_model_comparison(
            metrics, ['Pinball_Mean', 'Coverage', 'Width'],
            title='Quantile Models: Loss, Coverage, Width'
        )
        figures.append(self.visualizer.save(fig, 'quantile_metrics'))

        return StudyResult(
            name=self.name,
            metrics=metrics,
            predictions=predictions,
            figures=figures,
            extras={
                'x_test': x_plot,
                'y_test': y_test,
                'true_quantiles': true_q,
            }
        )
