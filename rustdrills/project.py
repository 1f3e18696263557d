"""Generation of rust-project.json so rust-analyzer understands the exercises."""

from __future__ import annotations

import glob
import json
import os
import subprocess
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

PROJECT_FILE = "./rust-project.json"


@dataclass
class Crate:
    """One standalone crate entry."""

    root_module: str
    edition: str = "2021"
    deps: list[str] = field(default_factory=list)
    # Lets rust-analyzer work inside test blocks.
    cfg: list[str] = field(default_factory=lambda: ["test"])


@dataclass
class RustAnalyzerProject:
    """Contents of rust-project.json."""

    sysroot_src: str = ""
    crates: list[Crate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sysroot_src": self.sysroot_src,
            "crates": [asdict(crate) for crate in self.crates],
        }

    def write_to_disk(self) -> None:
        """Write rust-project.json into the current directory."""
        Path(PROJECT_FILE).write_text(
            json.dumps(self.to_dict(), separators=(",", ":")), encoding="utf-8"
        )

    def path_to_json(self, path: str | os.PathLike) -> None:
        """Add a crate for the path when it is a .rs file."""
        if Path(path).suffix == ".rs":
            self.crates.append(Crate(root_module=str(path)))

    def exercises_to_json(self) -> None:
        """Add a crate for every .rs file under ./exercises."""
        for path in sorted(
            glob.glob("./exercises/**/*", recursive=True, include_hidden=True)
        ):
            self.path_to_json(path)

    def get_sysroot_src(self) -> None:
        """Find the standard library sources from RUST_SRC_PATH or rustc."""
        env_path = os.environ.get("RUST_SRC_PATH")
        if env_path is not None:
            self.sysroot_src = env_path
            return
        result = subprocess.run(["rustc", "--print", "sysroot"], capture_output=True)
        output = (result.stdout or b"").decode("utf-8", errors="replace")
        words = output.split()
        toolchain = words[0] if words else output
        print(f"Determined toolchain: {toolchain}\n")
        self.sysroot_src = os.path.join(
            toolchain, "lib", "rustlib", "src", "rust", "library"
        )