"""
Study Visualizer - 분석 결과 시각화 도구
=======================================

각 분석의 진단 플롯을 생성합니다.

주요 기능:
- 분위수 예측 구간 (band)
- 상관계수 수준별 계수/중요도 변동
- 모델 성능 비교 막대 그래프
- 2-D Partial Dependence 히트맵
- SHAP 상호작용 행렬
- 실제 vs 예측
"""

import logging
import math
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

LOGGER = logging.getLogger(__name__)


class StudyVisualizer:
    """
    분석 결과 시각화 클래스

    Parameters
    ----------
    output_dir : str or Path, optional
        save()가 PNG를 저장할 디렉터리 (없으면 생성)

    figsize : tuple, default=(12, 8)
        기본 Figure 크기

    style : str, optional
        Matplotlib 스타일

    dpi : int, default=100
        Figure DPI
    """

    def __init__(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        figsize: Tuple[int, int] = (12, 8),
        style: Optional[str] = None,
        dpi: int = 100
    ):
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.figsize = figsize
        self.style = style
        self.dpi = dpi

        if self.style:
            try:
                plt.style.use(self.style)
            except OSError:
                LOGGER.warning("Unknown matplotlib style %r, using default", self.style)

        # 색상 팔레트
        self.colors = {
            'primary': '#2E86AB',
            'secondary': '#A23B72',
            'accent': '#F18F01',
            'success': '#C73E1D',
            'neutral': '#3B3B3B',
            'truth': '#222222',
        }

    def _grid(self, n_panels: int, n_cols: int = 3, panel_size: Tuple[float, float] = (5, 4),
              figsize: Optional[Tuple[int, int]] = None):
        n_cols = min(n_cols, n_panels)
        n_rows = math.ceil(n_panels / n_cols)
        fig, axes = plt.subplots(
            n_rows, n_cols,
            figsize=figsize or (panel_size[0] * n_cols, panel_size[1] * n_rows),
            dpi=self.dpi,
            squeeze=False
        )
        axes = axes.flatten()
        # 사용하지 않는 subplot 숨기기
        for ax in axes[n_panels:]:
            ax.set_visible(False)
        return fig, axes

    def plot_quantile_bands(
        self,
        x: np.ndarray,
        y_true: np.ndarray,
        bands: Mapping[str, Mapping[float, np.ndarray]],
        true_quantiles: Optional[Mapping[float, np.ndarray]] = None,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Quantile Regression Bands"
    ):
        """
        모델별 분위수 예측 구간

        Parameters
        ----------
        x : ndarray
            가로축 피처 값
        y_true : ndarray
            실제값 (산점도)
        bands : dict
            {모델명: {분위수: 예측값}}
        true_quantiles : dict, optional
            {분위수: 참 조건부 분위수} (점선으로 표시)
        """
        if not bands:
            raise ValueError("bands가 비어 있습니다")

        x = np.asarray(x, dtype=float)
        order = np.argsort(x)
        x_sorted = x[order]

        fig, axes = self._grid(len(bands), figsize=figsize)

        for ax, (name, preds) in zip(axes, bands.items()):
            quantiles = sorted(preds)
            q_lo, q_hi = quantiles[0], quantiles[-1]

            ax.scatter(x, y_true, s=6, alpha=0.25, color=self.colors['neutral'], label='Test data')
            ax.fill_between(
                x_sorted,
                np.asarray(preds[q_lo])[order],
                np.asarray(preds[q_hi])[order],
                alpha=0.3, color=self.colors['primary'],
                label=f'q{q_lo:g}-q{q_hi:g}'
            )
            for q in quantiles[1:-1]:
                ax.plot(x_sorted, np.asarray(preds[q])[order],
                        color=self.colors['secondary'], linewidth=2, label=f'q{q:g}')

            if true_quantiles:
                for q, values in true_quantiles.items():
                    ax.plot(x_sorted, np.asarray(values)[order], linestyle='--',
                            color=self.colors['truth'], linewidth=1, alpha=0.8)

            ax.set_title(name, fontsize=11, fontweight='bold')
            ax.set_xlabel('x1', fontsize=10)
            ax.set_ylabel('y', fontsize=10)
            ax.legend(loc='upper left', fontsize=8)
            ax.grid(True, alpha=0.3)

        fig.suptitle(title, fontsize=14, fontweight='bold', y=1.02)
        plt.tight_layout()
        return fig

    def plot_model_comparison(
        self,
        results: pd.DataFrame,
        metrics: Sequence[str],
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Model Comparison"
    ):
        """
        모델 성능 비교 막대 그래프

        Parameters
        ----------
        results : DataFrame
            'Model' 컬럼과 메트릭 컬럼을 가진 결과표
        metrics : list
            비교할 메트릭 컬럼
        """
        missing = [m for m in metrics if m not in results.columns]
        if missing:
            raise KeyError(f"결과표에 없는 메트릭: {missing}")

        models = results['Model'].astype(str).tolist()
        n_metrics = len(metrics)

        fig, axes = plt.subplots(1, n_metrics, figsize=figsize or (5 * n_metrics, 5),
                                 dpi=self.dpi, squeeze=False)
        axes = axes[0]

        colors = plt.cm.Set2(np.linspace(0, 1, max(len(models), 2)))

        for ax, metric in zip(axes, metrics):
            values = results[metric].astype(float).fillna(0).tolist()
            bars = ax.bar(models, values, color=colors[:len(models)], alpha=0.85, edgecolor='white')

            # 값 표시
            for bar, val in zip(bars, values):
                ax.annotate(f'{val:.3f}',
                            xy=(bar.get_x() + bar.get_width() / 2, bar.get_height()),
                            xytext=(0, 3),
                            textcoords="offset points",
                            ha='center', va='bottom', fontsize=8)

            ax.set_title(metric, fontsize=12, fontweight='bold')
            ax.tick_params(axis='x', rotation=45)
            ax.grid(True, alpha=0.3, axis='y')

        fig.suptitle(title, fontsize=14, fontweight='bold', y=1.02)
        plt.tight_layout()
        return fig

    def plot_collinearity_summary(
        self,
        summary: pd.DataFrame,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Sensitivity to Multicollinearity"
    ):
        """
        상관계수 수준별 (1) OLS 계수 변동, (2) 부스팅 중요도 분배 변동, (3) 테스트 RMSE

        summary는 MulticollinearityStudy의 요약표
        ('Correlation', 'Model', 'Coef_x1_Std', 'SE_x1_Mean', 'Share_x1_Std', 'RMSE_Mean')
        """
        fig, axes = plt.subplots(1, 3, figsize=figsize or (16, 5), dpi=self.dpi)

        ols = summary[summary['Model'] == 'OLS'].sort_values('Correlation')
        boosters = summary[summary['Model'] != 'OLS']

        # 1. OLS 계수의 표본 표준편차와 평균 표준오차
        ax1 = axes[0]
        ax1.plot(ols['Correlation'], ols['Coef_x1_Std'], marker='o',
                 color=self.colors['primary'], linewidth=2, label='Std of β̂1 across repeats')
        ax1.plot(ols['Correlation'], ols['SE_x1_Mean'], marker='s', linestyle='--',
                 color=self.colors['accent'], linewidth=2, label='Mean SE(β̂1)')
        ax1.set_xlabel('Correlation ρ(x1, x2)', fontsize=10)
        ax1.set_ylabel('Coefficient spread', fontsize=10)
        ax1.set_title('OLS Coefficient Instability', fontsize=11, fontweight='bold')
        ax1.legend(fontsize=8)
        ax1.grid(True, alpha=0.3)

        # 2. 부스팅 중요도 분배 (x1 / (x1 + x2)) 의 표준편차
        ax2 = axes[1]
        for name, group in boosters.groupby('Model', sort=False):
            group = group.sort_values('Correlation')
            ax2.plot(group['Correlation'], group['Share_x1_Std'], marker='o', linewidth=2, label=name)
        ax2.set_xlabel('Correlation ρ(x1, x2)', fontsize=10)
        ax2.set_ylabel('Std of importance share x1', fontsize=10)
        ax2.set_title('Importance Split Instability', fontsize=11, fontweight='bold')
        ax2.legend(fontsize=8)
        ax2.grid(True, alpha=0.3)

        # 3. 테스트 RMSE
        ax3 = axes[2]
        for name, group in summary.groupby('Model', sort=False):
            group = group.sort_values('Correlation')
            ax3.plot(group['Correlation'], group['RMSE_Mean'], marker='o', linewidth=2, label=name)
        ax3.set_xlabel('Correlation ρ(x1, x2)', fontsize=10)
        ax3.set_ylabel('Test RMSE', fontsize=10)
        ax3.set_title('Predictive Accuracy', fontsize=11, fontweight='bold')
        ax3.legend(fontsize=8)
        ax3.grid(True, alpha=0.3)

        fig.suptitle(title, fontsize=14, fontweight='bold', y=1.02)
        plt.tight_layout()
        return fig

    def plot_partial_dependence_2d(
        self,
        surfaces: Mapping[str, Tuple[np.ndarray, np.ndarray, np.ndarray]],
        feature_names: Tuple[str, str] = ('x1', 'x2'),
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "2-D Partial Dependence"
    ):
        """
        모델별 2-D Partial Dependence 히트맵

        surfaces : {모델명: (grid_0, grid_1, pd_matrix)}
        """
        if not surfaces:
            raise ValueError("surfaces가 비어 있습니다")

        fig, axes = self._grid(len(surfaces), figsize=figsize)

        for ax, (name, (g0, g1, matrix)) in zip(axes, surfaces.items()):
            mesh = ax.pcolormesh(g0, g1, np.asarray(matrix).T, shading='auto', cmap='RdBu_r')
            ax.contour(g0, g1, np.asarray(matrix).T, colors='k', linewidths=0.5, alpha=0.5)
            fig.colorbar(mesh, ax=ax, fraction=0.046, pad=0.04)
            ax.set_xlabel(feature_names[0], fontsize=10)
            ax.set_ylabel(feature_names[1], fontsize=10)
            ax.set_title(name, fontsize=11, fontweight='bold')

        fig.suptitle(title, fontsize=14, fontweight='bold', y=1.02)
        plt.tight_layout()
        return fig

    def plot_interaction_matrix(
        self,
        matrix: pd.DataFrame,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Mean |SHAP interaction|"
    ):
        """SHAP 상호작용 행렬 히트맵 (대각 = 주효과)"""
        values = matrix.to_numpy(dtype=float)
        fig, ax = plt.subplots(figsize=figsize or (7, 6), dpi=self.dpi)

        image = ax.imshow(values, cmap='viridis')
        fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04)

        ax.set_xticks(range(len(matrix.columns)))
        ax.set_xticklabels(matrix.columns, rotation=45)
        ax.set_yticks(range(len(matrix.index)))
        ax.set_yticklabels(matrix.index)

        threshold = values.max() / 2 if values.size else 0
        for i in range(values.shape[0]):
            for j in range(values.shape[1]):
                ax.text(j, i, f'{values[i, j]:.2f}', ha='center', va='center', fontsize=8,
                        color='black' if values[i, j] > threshold else 'white')

        ax.set_title(title, fontsize=13, fontweight='bold')
        plt.tight_layout()
        return fig

    def plot_actual_vs_predicted(
        self,
        y_true: np.ndarray,
        predictions: Mapping[str, np.ndarray],
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Actual vs Predicted"
    ):
        """모델별 실제 vs 예측 산점도"""
        if not predictions:
            raise ValueError("predictions가 비어 있습니다")

        y_true = np.asarray(y_true, dtype=float)
        fig, axes = self._grid(len(predictions), figsize=figsize)

        for ax, (name, pred) in zip(axes, predictions.items()):
            pred = np.asarray(pred, dtype=float)
            ax.scatter(y_true, pred, s=8, alpha=0.4, color=self.colors['primary'])
            min_val = min(y_true.min(), pred.min())
            max_val = max(y_true.max(), pred.max())
            ax.plot([min_val, max_val], [min_val, max_val], 'r--', linewidth=1)

            rmse = np.sqrt(np.mean((y_true - pred) ** 2))
            ax.set_title(f'{name}\nRMSE: {rmse:.3f}', fontsize=10)
            ax.set_xlabel('Actual', fontsize=9)
            ax.set_ylabel('Predicted', fontsize=9)
            ax.grid(True, alpha=0.3)

        fig.suptitle(title, fontsize=14, fontweight='bold', y=1.02)
        plt.tight_layout()
        return fig

    def save(self, fig, name: str, dpi: Optional[int] = None) -> Path:
        """Figure를 output_dir/name.png 로 저장하고 닫음"""
        if self.output_dir is None:
            raise ValueError("output_dir가 설정되지 않았습니다")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        path = self.output_dir / (name if name.endswith('.png') else f'{name}.png')
        fig.savefig(path, dpi=dpi or self.dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
        plt.close(fig)
        LOGGER.info("Figure saved: %s", path)
        return path
