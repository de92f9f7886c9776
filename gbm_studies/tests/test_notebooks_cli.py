"""
노트북 생성 / CLI 테스트
=======================
"""

import json

import matplotlib.pyplot as plt
import nbformat
import pytest

from gbm_studies.cli import main
from gbm_studies.notebooks import NOTEBOOKS, build_all, build_notebook, write_notebook
from gbm_studies.simulate import simulate_heteroscedastic
from gbm_studies.studies import QuantileStudy


@pytest.mark.parametrize('name', sorted(NOTEBOOKS))
def test_build_notebook(name):
    """제목 → 설정 → 단계 → 해석 구조"""
    nb = build_notebook(name)
    cells = nb.cells

    assert cells[0].cell_type == 'markdown' and cells[0].source.startswith('# ')
    assert cells[3].cell_type == 'code' and 'gbm_studies' in cells[3].source
    assert cells[-1].cell_type == 'markdown' and '해석' in cells[-1].source
    assert sum(c.cell_type == 'code' for c in cells) >= 4
    assert nb.metadata['kernelspec']['language'] == 'python'

    for cell in cells:
        if cell.cell_type == 'code':
            compile(cell.source, f'<{name}>', 'exec')

    assert any('Config(n_samples=' in c.source for c in cells), "기본 설정이 설정 셀에 들어가야 함"
    assert not any('__CONFIG__' in c.source for c in cells)


NOTEBOOK_RUN_CONFIGS = {
    'quantile': {'n_samples': 300, 'n_estimators': 20},
    'multicollinearity': {
        'n_samples': 200, 'n_repeats': 2, 'correlations': (0.0, 0.9),
        'n_estimators': 20, 'backends': ('lightgbm',), 'verbose': False,
    },
    'interaction': {'n_samples': 300, 'n_estimators': 20, 'h_stat_samples': 15},
}


@pytest.mark.parametrize('name', sorted(NOTEBOOKS))
def test_execute_notebook(name, tmp_path, monkeypatch):
    """작은 설정으로 노트북 코드 셀을 순서대로 실행"""
    print("=" * 50)
    print(f"Test: Execute Notebook ({name})")
    print("=" * 50)

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(plt, 'show', lambda *args, **kwargs: None)

    nb = build_notebook(name, config=NOTEBOOK_RUN_CONFIGS[name])
    namespace = {}
    code_cells = [c for c in nb.cells if c.cell_type == 'code']
    for i, cell in enumerate(code_cells):
        exec(compile(cell.source, f'<{name} cell {i}>', 'exec'), namespace)
    plt.close('all')

    assert namespace['cfg'].n_samples == NOTEBOOK_RUN_CONFIGS[name]['n_samples']
    print(f"  ✓ {len(code_cells)} code cells executed")


def test_write_notebooks(tmp_path):
    print("=" * 50)
    print("Test: Write Notebooks")
    print("=" * 50)

    path = write_notebook('quantile', tmp_path / 'nb' / 'q.ipynb')
    loaded = nbformat.read(str(path), as_version=4)
    nbformat.validate(loaded)
    assert len(loaded.cells) == len(build_notebook('quantile').cells)

    paths = build_all(tmp_path / 'all')
    assert sorted(p.name for p in paths) == ['interaction.ipynb', 'multicollinearity.ipynb', 'quantile.ipynb']

    with pytest.raises(KeyError):
        build_notebook('survival')

    print(f"  ✓ {len(paths)} notebooks written")


def test_cli_notebooks(tmp_path):
    assert main(['notebooks', '--output-dir', str(tmp_path)]) == 0
    assert (tmp_path / 'interaction.ipynb').exists()


def test_cli_run(tmp_path):
    """설정 파일 + 출력 디렉터리 + quiet"""
    config = tmp_path / 'quantile.json'
    config.write_text(json.dumps({'n_samples': 300, 'n_estimators': 30, 'backends': ['lightgbm']}))
    output_dir = tmp_path / 'out'

    code = main(['run', 'quantile', '--config', str(config), '--output-dir', str(output_dir), '--quiet'])

    assert code == 0
    assert (output_dir / 'quantile' / 'metrics.csv').exists()
    assert (output_dir / 'quantile' / 'quantile_bands.png').exists()


def test_cli_run_with_data(tmp_path):
    data = tmp_path / 'data.csv'
    simulate_heteroscedastic(200, random_state=0).rename(columns={'y': 'target'}).to_csv(data, index=False)
    config = tmp_path / 'quantile.json'
    config.write_text(json.dumps({'n_estimators': 20, 'backends': ['sklearn']}))

    code = main(['run', 'quantile', '--config', str(config), '--data', str(data),
                 '--target', 'target', '--output-dir', str(tmp_path), '--quiet'])
    assert code == 0


def test_cli_errors(tmp_path):
    """인자/설정 오류는 종료 코드 2"""
    bad = tmp_path / 'bad.json'
    bad.write_text(json.dumps({'n_trees': 10}))

    assert main(['run', 'quantile', '--config', str(bad), '--output-dir', str(tmp_path)]) == 2

    wrong_type = tmp_path / 'wrong_type.json'
    wrong_type.write_text(json.dumps({'n_samples': '300'}))
    assert main(['run', 'quantile', '--config', str(wrong_type), '--output-dir', str(tmp_path)]) == 2
    assert main(['run', 'all', '--data', str(tmp_path / 'x.csv')]) == 2
    assert main(['run', 'quantile', '--data', str(tmp_path / 'missing.csv')]) == 2
    data = tmp_path / 'data.csv'
    simulate_heteroscedastic(50, random_state=0).to_csv(data, index=False)
    assert main(['run', 'multicollinearity', '--data', str(data), '--quiet']) == 2

    with pytest.raises(SystemExit) as exc:
        main(['run', 'survival'])
    assert exc.value.code == 2


def test_cli_runtime_errors_propagate(tmp_path, monkeypatch):
    """실행 중 발생한 오류는 종료 코드 2로 바뀌지 않고 전파"""
    def broken_run(self):
        raise ValueError("model fit failed")

    monkeypatch.setattr(QuantileStudy, '_run', broken_run)

    with pytest.raises(ValueError, match='model fit failed'):
        main(['run', 'quantile', '--output-dir', str(tmp_path), '--quiet'])
