from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"
SCENES_DIR = DATA_DIR / "scenes"
EXAMPLES_DIR = ROOT_DIR / "examples"
DEFAULT_EXAMPLE_SCENE = EXAMPLES_DIR / "smoke_example.json"


def ensure_data_dirs() -> None:
    SCENES_DIR.mkdir(parents=True, exist_ok=True)
