import json
import os
import tempfile
from pathlib import Path


def read_json(path: Path):
    with open(path, "r", encoding="utf-8") as fp:
        return json.load(fp)


def atomic_write_json(path: Path, payload) -> None:
    """같은 디렉터리의 임시 파일에 쓴 뒤 os.replace 로 교체한다. 중간에 죽어도 기존 파일은 온전하다."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            json.dump(payload, fp, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
