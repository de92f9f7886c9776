"""
Study Base
==========

모든 분석의 공통 실행 흐름.

    [1] 시뮬레이션 (또는 로드된 데이터 사용)
    [2] 학습/테스트 분할
    [3] 모델 학습
    [4] 메트릭 계산
    [5] 진단 플롯

run()은 진행 상황을 출력하고 output_dir/<name>/ 에 metrics.csv 와 PNG를 저장합니다.
"""

import logging
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

import pandas as pd

from ..config import StudyConfig, set_seed
from ..data import DatasetSplit, split_dataset
from ..plotting import StudyVisualizer
from ..simulate import TARGET

LOGGER = logging.getLogger(__name__)


@dataclass
class StudyResult:
    """분석 결과"""
    name: str
    metrics: pd.DataFrame
    predictions: Dict[str, Any] = field(default_factory=dict)
    figures: List[Path] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)

    def best(self, metric: str, ascending: bool = True) -> pd.Series:
        """metric 기준 최상위 행"""
        if metric not in self.metrics.columns:
            raise KeyError(f"결과표에 없는 메트릭: {metric}")
        return self.metrics.sort_values(metric, ascending=ascending).iloc[0]


class Study:
    """
    분석 기본 클래스

    Parameters
    ----------
    config : StudyConfig, optional
        분석 설정 (None이면 config_cls 기본값)
    data : DataFrame, optional
        시뮬레이션 대신 사용할 표 형식 데이터 (supports_data인 분석만)
    target : str
        data의 타겟 컬럼명
    """

    name = 'base'
    title = 'Study'
    config_cls: Type[StudyConfig] = StudyConfig
    supports_data = False
    n_steps = 5

    def __init__(
        self,
        config: Optional[StudyConfig] = None,
        data: Optional[pd.DataFrame] = None,
        target: str = TARGET
    ):
        if config is None:
            config = self.config_cls()
        if not isinstance(config, self.config_cls):
            raise TypeError(
                f"{type(self).__name__}에는 {self.config_cls.__name__}가 필요합니다: {type(config).__name__}"
            )
        if data is not None and not self.supports_data:
            raise ValueError(f"{self.name} 분석은 외부 데이터를 지원하지 않습니다")

        self.config = config.validate()
        self.data = data
        self.target = target
        self.output_dir = Path(self.config.output_dir) / self.name
        self.visualizer = StudyVisualizer(output_dir=self.output_dir, dpi=self.config.dpi)

    # -------------------------------------------------------------------------
    # 진행 출력
    # -------------------------------------------------------------------------

    def _step(self, index: int, message: str):
        LOGGER.info("[%s] step %d/%d: %s", self.name, index, self.n_steps, message)
        if self.config.verbose:
            print(f"\n[{index}/{self.n_steps}] {message}...")

    def _info(self, message: str):
        LOGGER.debug("[%s] %s", self.name, message)
        if self.config.verbose:
            print(f"      {message}")

    # -------------------------------------------------------------------------
    # 공통 단계
    # -------------------------------------------------------------------------

    def load_or_simulate(self) -> pd.DataFrame:
        if self.data is not None:
            if self.target not in self.data.columns:
                raise KeyError(f"타겟 컬럼이 없습니다: {self.target}")
            self._info(f"Using provided data: {self.data.shape}")
            return self.data
        df = self.simulate()
        self._info(f"Simulated data: {df.shape}")
        return df

    def simulate(self) -> pd.DataFrame:
        raise NotImplementedError

    def split(self, df: pd.DataFrame, stratify: bool = False) -> DatasetSplit:
        split = split_dataset(
            df,
            target=self.target,
            test_size=self.config.test_size,
            random_state=self.config.random_seed,
            stratify=stratify
        )
        self._info(f"Train: {split.n_train} rows, Test: {split.n_test} rows")
        return split

    def _run(self) -> StudyResult:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # 실행
    # -------------------------------------------------------------------------

    def run(self) -> StudyResult:
        """분석 실행 후 결과 저장"""
        verbose = self.config.verbose
        if verbose:
            print("=" * 70)
            print(self.title.upper())
            print("=" * 70)
            print(f"Start: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        set_seed(self.config.random_seed)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        with warnings.catch_warnings():
            warnings.simplefilter('ignore', category=UserWarning)
            warnings.simplefilter('ignore', category=FutureWarning)
            result = self._run()

        metrics_path = self.output_dir / 'metrics.csv'
        result.metrics.to_csv(metrics_path, index=False)
        LOGGER.info("[%s] metrics saved: %s", self.name, metrics_path)

        if verbose:
            print("\n" + "=" * 70)
            print("RESULTS")
            print("=" * 70)
            print(result.metrics.to_string(index=False))
            print(f"\nSaved: {metrics_path}")
            for path in result.figures:
                print(f"Saved: {path}")
            print("=" * 70)
            print(f"End: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
            print("=" * 70)

        return result
