"""
분석 실행 테스트
===============

작은 설정으로 각 분석을 끝까지 실행하고 결과표, 그림, 핵심 결론을 검증합니다.
"""

import numpy as np
import pandas as pd
import pytest

from gbm_studies.config import InteractionConfig, MulticollinearityConfig, QuantileConfig
from gbm_studies.simulate import simulate_heteroscedastic
from gbm_studies.studies import (
    InteractionStudy,
    MulticollinearityStudy,
    QuantileStudy,
    run_study,
)
from gbm_studies.studies.multicollinearity import replicate_seeds
from gbm_studies.studies.quantile import crossing_rate, fix_crossing

SMALL = {'n_estimators': 50, 'learning_rate': 0.1, 'verbose': False}


def test_crossing_fix():
    """교차된 분위수 예측을 행 단위 정렬로 복원"""
    preds = {
        0.1: np.array([0.0, 2.0, 1.0]),
        0.5: np.array([1.0, 1.0, 1.0]),
        0.9: np.array([2.0, 0.0, 1.0]),
    }
    assert np.isclose(crossing_rate(preds), 1 / 3)

    fixed = fix_crossing(preds)
    assert crossing_rate(fixed) == 0.0
    np.testing.assert_array_equal(fixed[0.1], [0.0, 0.0, 1.0])
    np.testing.assert_array_equal(fixed[0.9], [2.0, 2.0, 1.0])


def test_quantile_study(tmp_path):
    """분위수 분석 실행"""
    print("=" * 50)
    print("Test: Quantile Study")
    print("=" * 50)

    cfg = QuantileConfig(n_samples=600, backends=('lightgbm', 'sklearn'),
                         output_dir=str(tmp_path), **SMALL)
    result = QuantileStudy(cfg).run()
    metrics = result.metrics

    assert set(metrics['Model']) == {'LightGBM', 'SklearnGBM', 'LinearQuantReg'}
    assert metrics['Pinball_Mean'].is_monotonic_increasing
    assert np.allclose(metrics['Nominal'], 0.9)
    assert metrics['Coverage'].between(0, 1).all()

    for preds in result.predictions.values():
        assert crossing_rate(preds) == 0.0, "fix_crossing 적용 후 교차가 없어야 함"

    # 이분산 데이터에서 부스팅 중앙값 예측이 선형보다 정확
    linear = metrics.set_index('Model').loc['LinearQuantReg', 'RMSE_Median']
    assert metrics.set_index('Model').loc['LightGBM', 'RMSE_Median'] < linear

    assert (tmp_path / 'quantile' / 'metrics.csv').exists()
    assert [p.name for p in result.figures] == ['quantile_bands.png', 'quantile_metrics.png']
    assert all(p.exists() for p in result.figures)
    assert result.extras['true_quantiles'] is not None

    print(metrics[['Model', 'Pinball_Mean', 'Coverage', 'Crossing']].to_string(index=False))


def test_quantile_study_with_data(tmp_path):
    """외부 데이터 사용 시 참 분위수 없음"""
    df = simulate_heteroscedastic(300, random_state=5).rename(columns={'y': 'price', 'x1': 'feature'})
    cfg = QuantileConfig(backends=('lightgbm',), output_dir=str(tmp_path), **SMALL)

    result = QuantileStudy(cfg, data=df, target='price').run()

    assert result.extras['true_quantiles'] is None
    assert len(result.extras['y_test']) == 75

    with pytest.raises(KeyError):
        QuantileStudy(cfg, data=df, target='y').run()


def test_multicollinearity_study(tmp_path):
    """상관이 강할수록 OLS 표준오차와 VIF 증가"""
    print("\n" + "=" * 50)
    print("Test: Multicollinearity Study")
    print("=" * 50)

    cfg = MulticollinearityConfig(
        n_samples=400, correlations=(0.0, 0.95), n_repeats=3,
        backends=('lightgbm',), n_estimators=30, verbose=False, output_dir=str(tmp_path)
    )
    result = MulticollinearityStudy(cfg).run()
    summary = result.metrics

    assert len(summary) == 4
    assert len(result.extras['records']) == 2 * 3 * 2

    ols = summary[summary['Model'] == 'OLS'].set_index('Correlation')
    assert ols.loc[0.95, 'SE_x1_Mean'] > 2 * ols.loc[0.0, 'SE_x1_Mean']
    assert ols.loc[0.95, 'VIF_x1_Mean'] > 5
    assert ols.loc[0.0, 'VIF_x1_Mean'] < 1.5

    booster = summary[summary['Model'] == 'LightGBM']
    assert booster['Share_x1_Mean'].between(0, 1).all()
    assert booster['Coef_x1_Mean'].isna().all()

    assert [p.name for p in result.figures] == ['multicollinearity_summary.png']

    print(summary[['Correlation', 'Model', 'SE_x1_Mean', 'Share_x1_Std', 'RMSE_Mean']].to_string(index=False))


def test_multicollinearity_rejects_data():
    with pytest.raises(ValueError):
        MulticollinearityStudy(data=pd.DataFrame({'x1': [1.0], 'y': [1.0]}))


def test_interaction_study_regression(tmp_path):
    """가법 모델 H² ≈ 0, 곱 항 모델이 최저 RMSE"""
    print("\n" + "=" * 50)
    print("Test: Interaction Study (regression)")
    print("=" * 50)

    cfg = InteractionConfig(n_samples=600, backends=('xgboost', 'lightgbm'),
                            h_stat_samples=30, output_dir=str(tmp_path), **SMALL)
    result = InteractionStudy(cfg).run()
    metrics = result.metrics.set_index('Model')

    assert len(metrics) == 6
    assert metrics.loc['Linear (additive)', 'H_x1:x2'] < 1e-6
    assert metrics.loc['Linear (x1:x2)', 'H_x1:x2'] > 0.3
    assert metrics.loc['XGBoost (depth=1)', 'H_x1:x2'] < 1e-3
    assert metrics.loc['XGBoost (depth=3)', 'H_x1:x2'] > metrics.loc['XGBoost (depth=3)', 'H_x3:x4']
    assert result.best('RMSE')['Model'] == 'Linear (x1:x2)'
    assert metrics.loc['XGBoost (depth=3)', 'RMSE'] < metrics.loc['XGBoost (depth=1)', 'RMSE']

    assert set(result.extras['shap_importance'].index[:2]) == {'x1', 'x2'}
    assert result.extras['interaction_matrix'].shape == (5, 5)
    assert [p.name for p in result.figures] == [
        'interaction_metrics.png', 'partial_dependence_2d.png',
        'shap_interaction_matrix.png', 'actual_vs_predicted.png',
    ]

    print(result.metrics[['Model', 'RMSE', 'H_x1:x2', 'H_x3:x4']].to_string(index=False))


def test_interaction_study_classification(tmp_path):
    """분류: AUC 기준, margin 스케일 H²"""
    cfg = InteractionConfig(task='classification', n_samples=600, backends=('lightgbm',),
                            h_stat_samples=20, output_dir=str(tmp_path), **SMALL)
    result = run_study('interaction', cfg)
    metrics = result.metrics.set_index('Model')

    assert 'AUC' in metrics.columns
    assert metrics['AUC'].between(0.5, 1.0).all()
    assert metrics.loc['Linear (additive)', 'H_x1:x2'] < 1e-6
    assert result.metrics['AUC'].is_monotonic_decreasing
    assert 'interaction_matrix' not in result.extras
    assert len(result.figures) == 2


def test_interaction_study_missing_pair(tmp_path):
    df = pd.DataFrame(np.random.randn(100, 3), columns=['a', 'b', 'y'])
    cfg = InteractionConfig(backends=('lightgbm',), output_dir=str(tmp_path), **SMALL)
    with pytest.raises(KeyError):
        InteractionStudy(cfg, data=df).run()


def test_study_errors():
    with pytest.raises(TypeError):
        QuantileStudy(InteractionConfig())
    with pytest.raises(KeyError):
        run_study('survival')
    with pytest.raises(ValueError):
        QuantileStudy(QuantileConfig(quantiles=(0.5,)))


def test_interaction_model_names_unique(tmp_path):
    """가법 부스팅과 전체 부스팅은 서로 다른 모델명, 깊이 1 설정은 거부"""
    cfg = InteractionConfig(max_depth=2, backends=('xgboost', 'lightgbm'),
                            output_dir=str(tmp_path), **SMALL)
    names = [name for name, _, _ in InteractionStudy(cfg).build_models()]

    assert len(names) == len(set(names))
    assert 'XGBoost (depth=1)' in names and 'XGBoost (depth=2)' in names

    with pytest.raises(ValueError, match='max_depth'):
        InteractionStudy(InteractionConfig(max_depth=1, backends=('xgboost',), **SMALL))


def test_replicate_seeds():
    """반복 수가 많아도 (상관 수준, 반복) 시드가 겹치지 않음"""
    print("\n" + "=" * 50)
    print("Test: Replicate Seeds")
    print("=" * 50)

    seeds = replicate_seeds(42, n_levels=2, n_repeats=1100)

    assert seeds.shape == (2, 1100)
    assert len(np.unique(seeds)) == seeds.size
    assert seeds.min() >= 0 and seeds.max() < 2 ** 31 - 1
    np.testing.assert_array_equal(seeds, replicate_seeds(42, 2, 1100))
    assert not np.array_equal(seeds, replicate_seeds(43, 2, 1100))

    print(f"  ✓ {seeds.size} unique seeds")
