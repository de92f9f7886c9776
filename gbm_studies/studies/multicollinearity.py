"""
Multicollinearity Study
=======================

x1, x2 의 상관계수 ρ 를 높여가며 반복 시뮬레이션합니다.

관찰 대상:
- OLS: β̂1 의 반복 간 표준편차와 평균 표준오차 (이론상 ∝ 1/sqrt(1 - ρ²))
- 부스팅: x1, x2 사이의 중요도 분배 share = imp(x1) / (imp(x1) + imp(x2)) 의 변동
  (상관이 강하면 트리가 둘 중 하나를 임의로 골라 분배가 불안정해짐)
- 모든 모델: 테스트 RMSE (예측 성능 자체는 공선성에 크게 영향받지 않음)
- x1 의 VIF
"""

from typing import Optional

import numpy as np
import pandas as pd

from ..config import MulticollinearityConfig
from ..data import DatasetSplit, split_dataset
from ..diagnostics import vif_table
from ..metrics import Evaluator
from ..models import BACKEND_LABELS, LinearModel, build_booster, normalized_importance
from ..simulate import simulate_correlated
from .base import Study, StudyResult


def replicate_seeds(random_seed: int, n_levels: int, n_repeats: int) -> np.ndarray:
    """
    (상관 수준, 반복)별 독립 시드 행렬 [n_levels, n_repeats]

    SeedSequence.spawn 으로 생성하므로 반복 수와 무관하게 시드가 겹치지 않습니다.
    LightGBM 시드 범위(int32)에 맞춰 2^31 - 1 미만으로 제한합니다.
    """
    children = np.random.SeedSequence(random_seed).spawn(n_levels * n_repeats)
    seeds = [int(child.generate_state(1)[0]) % (2 ** 31 - 1) for child in children]
    return np.asarray(seeds, dtype=np.int64).reshape(n_levels, n_repeats)


def _share(a: float, b: float) -> float:
    total = a + b
    return float(a / total) if total > 0 else np.nan


class MulticollinearityStudy(Study):
    """다중공선성 민감도 분석"""

    name = 'multicollinearity'
    title = 'Multicollinearity Sensitivity Study'
    config_cls = MulticollinearityConfig
    n_steps = 3

    def simulate(self, rho: float = 0.0, seed: Optional[int] = None) -> pd.DataFrame:
        cfg = self.config
        return simulate_correlated(
            n_samples=cfg.n_samples,
            rho=rho,
            coefficients=cfg.coefficients,
            noise_std=cfg.noise_std,
            random_state=cfg.random_seed if seed is None else seed
        )

    def _replicate(self, rho: float, repeat: int, seed: int):
        """단일 (ρ, 반복) 실험 기록"""
        cfg = self.config
        df = self.simulate(rho, seed)
        split = self._split_replicate(df, seed)
        records = []

        vif = vif_table(split.X_train).set_index('feature')['VIF']

        ols = LinearModel(kind='ols').fit(split.X_train, split.y_train)
        b1, b2 = float(ols.params_['x1']), float(ols.params_['x2'])
        records.append({
            'Correlation': rho,
            'Repeat': repeat,
            'Model': 'OLS',
            'Coef_x1': b1,
            'Coef_x2': b2,
            'SE_x1': float(ols.bse_['x1']),
            'Share_x1': _share(abs(b1), abs(b2)),
            'RMSE': Evaluator.rmse(split.y_test, ols.predict(split.X_test)),
            'VIF_x1': float(vif['x1']),
        })

        for backend in cfg.backends:
            model = build_booster(backend, random_state=seed, **cfg.booster_params())
            model.fit(split.X_train, split.y_train)
            importance = normalized_importance(model, split.feature_names)
            records.append({
                'Correlation': rho,
                'Repeat': repeat,
                'Model': BACKEND_LABELS[backend],
                'Coef_x1': np.nan,
                'Coef_x2': np.nan,
                'SE_x1': np.nan,
                'Share_x1': _share(importance['x1'], importance['x2']),
                'RMSE': Evaluator.rmse(split.y_test, model.predict(split.X_test)),
                'VIF_x1': float(vif['x1']),
            })

        return records

    def _split_replicate(self, df: pd.DataFrame, seed: int) -> DatasetSplit:
        # 반복마다 분할 시드도 바꿔 표본 변동을 모두 반영
        return split_dataset(df, target=self.target, test_size=self.config.test_size, random_state=seed)

    @staticmethod
    def summarize(records: pd.DataFrame) -> pd.DataFrame:
        """(ρ, 모델)별 요약"""
        grouped = records.groupby(['Correlation', 'Model'], sort=False)
        summary = grouped.agg(
            Coef_x1_Mean=('Coef_x1', 'mean'),
            Coef_x1_Std=('Coef_x1', 'std'),
            SE_x1_Mean=('SE_x1', 'mean'),
            Share_x1_Mean=('Share_x1', 'mean'),
            Share_x1_Std=('Share_x1', 'std'),
            RMSE_Mean=('RMSE', 'mean'),
            RMSE_Std=('RMSE', 'std'),
            VIF_x1_Mean=('VIF_x1', 'mean'),
        ).reset_index()
        return summary

    def _run(self) -> StudyResult:
        cfg = self.config

        # 1. 반복 실험: 시뮬레이션 → 분할 → 학습 → 평가
        self._step(1, f"Running {len(cfg.correlations)} correlation levels x {cfg.n_repeats} replicates")

        seeds = replicate_seeds(cfg.random_seed, len(cfg.correlations), cfg.n_repeats)
        records = []
        for i, rho in enumerate(cfg.correlations):
            for repeat in range(cfg.n_repeats):
                seed = int(seeds[i, repeat])
                records.extend(self._replicate(rho, repeat, seed))
            self._info(f"rho={rho:.2f}: {cfg.n_repeats} replicates done")

        records = pd.DataFrame(records)

        # 2. 요약
        self._step(2, "Summarizing coefficient and importance stability")
        summary = self.summarize(records)
        for rho, group in summary.groupby('Correlation', sort=False):
            ols = group[group['Model'] == 'OLS'].iloc[0]
            self._info(
                f"rho={rho:.2f}: VIF(x1)={ols['VIF_x1_Mean']:.2f}, "
                f"std(b1)={ols['Coef_x1_Std']:.3f}, mean SE(b1)={ols['SE_x1_Mean']:.3f}"
            )

        # 3. 플롯
        self._step(3, "Plotting sensitivity curves")
        fig = self.visualizer.plot_collinearity_summary(summary)
        figures = [self.visualizer.save(fig, 'multicollinearity_summary')]

        return StudyResult(
            name=self.name,
            metrics=summary,
            predictions={},
            figures=figures,
            extras={'records': records}
        )
