"""
Pytest fixtures for piano_synth tests.
"""
import pytest
import sys
from pathlib import Path
import tempfile
import shutil

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def sample_rate():
    """Low sample rate keeps renders in tests fast."""
    return 16000


@pytest.fixture
def temp_dir():
    """Create temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_yaml_file(temp_dir):
    """Path for a temporary YAML preset."""
    return Path(temp_dir) / "test_preset.yaml"


@pytest.fixture
def null_context(sample_rate):
    """RenderContext writing into an in-memory sink."""
    from piano_synth.graph import RenderContext

    ctx = RenderContext(sample_rate=sample_rate)
    yield ctx
    ctx.close()


@pytest.fixture
def quick_config(sample_rate):
    """Engine settings for short, silent notes."""
    from piano_synth.config_loader import SynthConfig

    return SynthConfig(sample_rate=sample_rate, note_duration=0.25, sink="null")


@pytest.fixture
def quick_session_kwargs(sample_rate):
    """NoteSession keyword arguments for short, silent notes."""
    return {
        "sample_rate": sample_rate,
        "total_duration": 0.25,
        "sink_kind": "null",
    }


@pytest.fixture
def project_config_dir():
    """The preset directory shipped inside the package."""
    return PROJECT_ROOT / 'piano_synth' / 'configs'
