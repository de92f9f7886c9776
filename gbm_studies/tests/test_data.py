"""
데이터 로드/분할 테스트
======================

1. 결측 타겟 행 제거, forward fill → 중앙값 대체
2. 비수치형 / 전부 결측인 컬럼 제거
3. 학습/테스트 인덱스 분리, 층화 분할
"""

import numpy as np
import pandas as pd
import pytest

from gbm_studies.data import load_csv, split_dataset
from gbm_studies.simulate import simulate_interaction


@pytest.fixture
def messy_csv(tmp_path):
    df = pd.DataFrame({
        'a': [np.nan, 1.0, np.nan, 3.0, 4.0],
        'b': [10.0, 20.0, 30.0, np.nan, 50.0],
        'label': ['u', 'v', 'w', 'x', 'z'],
        'empty': [np.nan] * 5,
        'y': [1.0, 2.0, np.nan, 4.0, 5.0],
    })
    path = tmp_path / 'messy.csv'
    df.to_csv(path, index=False)
    return path


def test_load_csv_cleaning(messy_csv):
    """결측 처리와 컬럼 선택"""
    print("=" * 50)
    print("Test: Load CSV")
    print("=" * 50)

    df = load_csv(messy_csv, target='y')

    assert list(df.columns) == ['a', 'b', 'y'], "비수치형/전부 결측 컬럼은 제거"
    assert len(df) == 4, "타겟 결측 행 제거"
    assert df['y'].tolist() == [1.0, 2.0, 4.0, 5.0]
    assert not df.isna().any().any()

    # a: [nan, 1, 3, 4] → ffill → [nan, 1, 3, 4] → 중앙값 3 으로 첫 행 대체
    assert df['a'].tolist() == [3.0, 1.0, 3.0, 4.0]
    # b: [10, 20, nan, 50] → ffill → [10, 20, 20, 50]
    assert df['b'].tolist() == [10.0, 20.0, 20.0, 50.0]

    print(f"  ✓ columns: {list(df.columns)}, rows: {len(df)}")


def test_load_csv_errors(messy_csv, tmp_path):
    with pytest.raises(FileNotFoundError):
        load_csv(tmp_path / 'missing.csv', target='y')
    with pytest.raises(KeyError):
        load_csv(messy_csv, target='price')


def test_split_no_overlap():
    """학습/테스트 인덱스가 겹치지 않음"""
    df = simulate_interaction(400, random_state=0)
    split = split_dataset(df, target='y', test_size=0.25, random_state=1)

    assert split.n_train == 300 and split.n_test == 100
    assert set(split.X_train.index).isdisjoint(split.X_test.index)
    assert set(split.X_train.index) | set(split.X_test.index) == set(df.index)
    assert split.feature_names == ['x1', 'x2', 'x3', 'x4', 'x5']
    assert (split.y_train.index == split.X_train.index).all()

    with pytest.raises(KeyError):
        split_dataset(df, target='price')
    with pytest.raises(ValueError):
        split_dataset(df, test_size=0.0)


def test_split_stratified():
    """층화 분할은 클래스 비율 유지"""
    print("\n" + "=" * 50)
    print("Test: Stratified Split")
    print("=" * 50)

    y = np.array([1] * 80 + [0] * 320)
    df = pd.DataFrame({'x1': np.arange(400, dtype=float), 'y': y})

    split = split_dataset(df, target='y', test_size=0.25, random_state=3, stratify=True)

    assert split.y_test.sum() == 20
    assert split.y_train.sum() == 60

    print(f"  ✓ positive rate train={split.y_train.mean():.3f}, test={split.y_test.mean():.3f}")
