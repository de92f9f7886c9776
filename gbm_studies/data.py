"""
Data Management
===============

표 형식 데이터 로드와 학습/테스트 분할.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

LOGGER = logging.getLogger(__name__)


@dataclass
class DatasetSplit:
    """학습/테스트 분할 결과"""
    X_train: pd.DataFrame
    X_test: pd.DataFrame
    y_train: pd.Series
    y_test: pd.Series
    feature_names: List[str] = field(default_factory=list)

    @property
    def n_train(self) -> int:
        return len(self.y_train)

    @property
    def n_test(self) -> int:
        return len(self.y_test)


def load_csv(path: Union[str, Path], target: str) -> pd.DataFrame:
    """
    CSV 데이터 로드

    - 타겟이 결측인 행은 제거
    - 나머지 결측은 forward fill 후 남은 값은 컬럼 중앙값으로 대체
    - 수치형 피처만 유지 (값이 전부 결측인 컬럼은 제거)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"데이터 파일이 없습니다: {path}")

    df = pd.read_csv(path)
    if target not in df.columns:
        raise KeyError(f"타겟 컬럼이 없습니다: {target}")

    n_raw = len(df)
    df = df.dropna(subset=[target])

    numeric_cols = [c for c in df.select_dtypes(include=[np.number]).columns if c != target]
    dropped = [c for c in df.columns if c not in numeric_cols and c != target]
    if dropped:
        LOGGER.info("Dropping non-numeric columns: %s", dropped)

    empty = [c for c in numeric_cols if df[c].isna().all()]
    if empty:
        LOGGER.info("Dropping all-missing columns: %s", empty)
        numeric_cols = [c for c in numeric_cols if c not in empty]

    features = df[numeric_cols].ffill()
    features = features.fillna(features.median())

    result = features.copy()
    result[target] = df[target].values
    result = result.reset_index(drop=True)

    LOGGER.info("Loaded %s: %d rows (%d dropped), %d features",
                path.name, len(result), n_raw - len(result), len(numeric_cols))
    return result


def split_dataset(
    df: pd.DataFrame,
    target: str = 'y',
    test_size: float = 0.25,
    random_state: int = 42,
    stratify: bool = False
) -> DatasetSplit:
    """
    무작위 학습/테스트 분할

    Parameters
    ----------
    df : DataFrame
        피처와 타겟을 포함한 데이터
    target : str
        타겟 컬럼명
    test_size : float
        테스트 비율 (0, 1)
    random_state : int
        분할 시드
    stratify : bool
        분류 타겟의 클래스 비율 유지 여부
    """
    if target not in df.columns:
        raise KeyError(f"타겟 컬럼이 없습니다: {target}")
    if not 0.0 < test_size < 1.0:
        raise ValueError(f"test_size는 (0, 1) 범위여야 합니다: {test_size}")

    X = df.drop(columns=[target])
    y = df[target]

    X_train, X_test, y_train, y_test = train_test_split(
        X, y,
        test_size=test_size,
        random_state=random_state,
        stratify=y if stratify else None
    )

    return DatasetSplit(
        X_train=X_train,
        X_test=X_test,
        y_train=y_train,
        y_test=y_test,
        feature_names=list(X.columns)
    )
