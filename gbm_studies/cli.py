"""
Command Line Interface
======================

사용법:
    python -m gbm_studies run quantile
    python -m gbm_studies run all --output-dir outputs --quiet
    python -m gbm_studies run interaction --config interaction.json
    python -m gbm_studies run quantile --data prices.csv --target price
    python -m gbm_studies notebooks --output-dir notebooks

종료 코드: 성공 0, 인자/설정 오류 2
"""

import argparse
import logging
from dataclasses import replace
from typing import List, Optional

from .config import config_from_dict, load_config
from .data import load_csv
from .notebooks import build_all
from .studies import STUDIES, Study, get_study

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='gbm_studies',
        description="Gradient boosting behaviour studies"
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    run = subparsers.add_parser('run', help="Run a study and save metrics/figures")
    run.add_argument('study', choices=sorted(STUDIES) + ['all'])
    run.add_argument('--config', default=None,
                     help="JSON config file. With 'all', only common keys are allowed")
    run.add_argument('--output-dir', default=None)
    run.add_argument('--quiet', action='store_true', help="Suppress progress output")
    run.add_argument('--data', default=None, help="CSV file used instead of simulated data")
    run.add_argument('--target', default='y', help="Target column of --data")

    notebooks = subparsers.add_parser('notebooks', help="Generate study notebooks")
    notebooks.add_argument('--output-dir', default='notebooks')

    return parser.parse_args(argv)


def _study_config(name: str, args: argparse.Namespace):
    if args.config is None:
        config = config_from_dict({}, kind=name)
    elif args.study == 'all':
        common = load_config(args.config, kind='base')
        config = config_from_dict(common.to_dict(), kind=name)
    else:
        config = load_config(args.config, kind=name)

    overrides = {}
    if args.output_dir is not None:
        overrides['output_dir'] = args.output_dir
    if args.quiet:
        overrides['verbose'] = False
    return replace(config, **overrides) if overrides else config


def _prepare_studies(args: argparse.Namespace) -> List[Study]:
    """설정/데이터 로드 및 분석 생성. 오류는 실행 전에 모두 발생"""
    names = sorted(STUDIES) if args.study == 'all' else [args.study]

    data = None
    if args.data is not None:
        if args.study == 'all':
            raise ValueError("--data는 단일 분석에서만 사용할 수 있습니다")
        data = load_csv(args.data, args.target)

    configs = {name: _study_config(name, args) for name in names}
    return [get_study(name)(configs[name], data=data, target=args.target) for name in names]


def _run(studies: List[Study]) -> int:
    for study in studies:
        result = study.run()
        LOGGER.info("[%s] done: %d rows, %d figures", study.name, len(result.metrics), len(result.figures))
    return EXIT_OK


def _notebooks(args: argparse.Namespace) -> int:
    paths = build_all(args.output_dir)
    for path in paths:
        print(f"Saved: {path}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    args = parse_args(argv)

    if args.command == 'notebooks':
        return _notebooks(args)

    # 인자/설정/데이터 오류만 종료 코드 2, 실행 중 오류는 그대로 전파
    try:
        studies = _prepare_studies(args)
    except (ValueError, KeyError, FileNotFoundError) as e:
        LOGGER.error("%s", e)
        return EXIT_USAGE
    return _run(studies)
