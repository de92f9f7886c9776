"""
모델 생성 테스트
===============

1. 백엔드별 부스팅 모델 생성/학습
2. 분위수 objective 의 순서
3. statsmodels 선형 모델 (계수 복원, 곱 항, logit)
4. 정규화 중요도와 margin 출력
"""

import numpy as np
import pandas as pd
import pytest

from gbm_studies.models import (
    BACKEND_LABELS,
    LinearModel,
    build_booster,
    normalized_importance,
    predict_scores,
    raw_scores,
)
from gbm_studies.simulate import simulate_heteroscedastic, simulate_interaction

SMALL = {'n_estimators': 40, 'learning_rate': 0.1, 'max_depth': 3}


@pytest.fixture(scope='module')
def regression_data():
    df = simulate_interaction(400, strength=2.0, n_noise_features=2, random_state=0)
    return df.drop(columns='y'), df['y']


@pytest.mark.parametrize('backend', sorted(BACKEND_LABELS))
def test_booster_backends(backend, regression_data):
    """모든 백엔드가 학습/예측 가능"""
    X, y = regression_data
    model = build_booster(backend, random_state=0, **SMALL)
    model.fit(X, y)
    pred = model.predict(X)

    assert pred.shape == (len(X),)
    assert np.sqrt(np.mean((y - pred) ** 2)) < y.std(), f"{backend}: 예측이 평균보다 나빠서는 안 됨"

    importance = normalized_importance(model, list(X.columns))
    assert np.isclose(importance.sum(), 1.0)
    assert importance.idxmax() in ('x1', 'x2')


@pytest.mark.parametrize('backend', ['xgboost', 'lightgbm', 'sklearn'])
def test_quantile_objective(backend):
    """상위 분위수 모델의 예측이 하위 분위수보다 큼"""
    print("=" * 50)
    print(f"Test: Quantile Objective ({backend})")
    print("=" * 50)

    df = simulate_heteroscedastic(600, random_state=1)
    X, y = df[['x1']], df['y']

    preds = {}
    for q in (0.1, 0.9):
        model = build_booster(backend, objective='quantile', quantile=q, random_state=0, **SMALL)
        model.fit(X, y)
        preds[q] = model.predict(X)

    assert np.mean(preds[0.9] > preds[0.1]) > 0.9
    below = np.mean(y.to_numpy() <= preds[0.9])
    assert 0.7 < below <= 1.0, f"q0.9 아래 비율: {below:.3f}"

    print(f"  ✓ P(y <= q0.9 pred): {below:.3f}")


def test_build_booster_errors():
    with pytest.raises(ValueError):
        build_booster('gbdt')
    with pytest.raises(ValueError):
        build_booster('xgboost', task='ranking')
    with pytest.raises(ValueError):
        build_booster('xgboost', objective='quantile', quantile=None)
    with pytest.raises(ValueError):
        build_booster('lightgbm', task='classification', objective='quantile', quantile=0.5)


def test_catboost_parameter_names():
    """공통 이름이 catboost 이름으로 변환됨"""
    model = build_booster('catboost', n_estimators=15, max_depth=2, learning_rate=0.1)
    params = model.get_params()
    assert params['iterations'] == 15
    assert params['depth'] == 2
    assert 'n_estimators' not in params


def test_linear_ols_recovers_coefficients():
    """OLS 계수 복원과 곱 항"""
    print("\n" + "=" * 50)
    print("Test: Linear OLS")
    print("=" * 50)

    np.random.seed(42)
    X = pd.DataFrame(np.random.randn(500, 2), columns=['x1', 'x2'])
    y = 1.0 + 2.0 * X['x1'] - 1.0 * X['x2'] + 3.0 * X['x1'] * X['x2'] + np.random.randn(500) * 0.1

    additive = LinearModel(kind='ols').fit(X, y)
    product = LinearModel(kind='ols', interactions=[('x1', 'x2')]).fit(X, y)

    assert product.design_columns_ == ['x1', 'x2', 'x1:x2']
    assert np.isclose(product.params_['x1:x2'], 3.0, atol=0.05)
    assert np.isclose(product.params_['x1'], 2.0, atol=0.05)
    assert np.isclose(product.params_['const'], 1.0, atol=0.05)

    rmse_add = np.sqrt(np.mean((y - additive.predict(X)) ** 2))
    rmse_prod = np.sqrt(np.mean((y - product.predict(X)) ** 2))
    assert rmse_prod < rmse_add / 5

    np.testing.assert_allclose(product.decision_function(X), product.predict(X))
    assert set(product.describe()['params']) == {'const', 'x1', 'x2', 'x1:x2'}
    assert len(LinearModel(interactions='all').fit(X, y).design_columns_) == 3

    with pytest.raises(KeyError):
        LinearModel(interactions=[('x1', 'x9')]).fit(X, y)

    print(f"  ✓ β(x1:x2) = {product.params_['x1:x2']:.3f}")
    print(f"  ✓ RMSE additive={rmse_add:.3f}, with product={rmse_prod:.3f}")


def test_linear_quantile_and_logit():
    df = simulate_heteroscedastic(800, random_state=2)
    X, y = df[['x1']], df['y']

    low = LinearModel(kind='quantile', quantile=0.1).fit(X, y).predict(X)
    high = LinearModel(kind='quantile', quantile=0.9).fit(X, y).predict(X)
    assert np.all(high > low)

    clf = simulate_interaction(600, task='classification', random_state=2)
    logit = LinearModel(kind='logit').fit(clf.drop(columns='y'), clf['y'])
    proba = logit.predict_proba(clf.drop(columns='y'))
    assert proba.shape == (600, 2)
    np.testing.assert_allclose(proba.sum(axis=1), 1.0)

    with pytest.raises(RuntimeError):
        LinearModel(kind='ols').predict_proba(X)


def test_linear_errors():
    with pytest.raises(ValueError):
        LinearModel(kind='ridge')
    with pytest.raises(ValueError):
        LinearModel(kind='quantile')
    with pytest.raises(RuntimeError):
        LinearModel().predict(pd.DataFrame({'x1': [1.0]}))


@pytest.mark.parametrize('backend', ['xgboost', 'lightgbm', 'sklearn'])
def test_classifier_margin(backend):
    """sigmoid(margin) == 양성 확률"""
    df = simulate_interaction(400, task='classification', random_state=4)
    X, y = df.drop(columns='y'), df['y']

    model = build_booster(backend, task='classification', random_state=0, **SMALL)
    model.fit(X, y)

    proba = predict_scores(model, X, task='classification')
    margin = raw_scores(model, X)

    np.testing.assert_allclose(1.0 / (1.0 + np.exp(-margin)), proba, atol=1e-5)


def test_normalized_importance_zero():
    """분할이 없으면 0 벡터"""
    class Stub:
        feature_importances_ = np.zeros(3)

    importance = normalized_importance(Stub(), ['a', 'b', 'c'])
    assert (importance == 0).all()

    with pytest.raises(ValueError):
        normalized_importance(Stub(), ['a', 'b'])
