"""Byte-compilation and import of test and config files."""

import importlib.util
import logging
import py_compile
import sys
from pathlib import Path
from types import ModuleType
from typing import Union
from uuid import uuid4

from intentest.error_handling import IntentestError

logger = logging.getLogger(__name__)


def compile_file(path: Union[str, Path]) -> Path:
    """
    Byte-compile a Python file and return the compiled path.

    Raises:
        IntentestError: If the file is missing or has a syntax error
    """
    source = Path(path)
    if not source.exists():
        raise IntentestError(f"File not found: {source}")

    try:
        compiled = py_compile.compile(str(source), doraise=True)
    except py_compile.PyCompileError as exc:
        raise IntentestError(
            f"Failed to compile {source.name}: {exc.msg}", cause=exc
        ) from exc

    logger.debug("Compiled file", extra={"source": str(source), "compiled": compiled})
    return Path(compiled)


def load_module(path: Union[str, Path]) -> ModuleType:
    """
    Import a source or bytecode file under a unique module name.

    Each call yields a fresh module object, so importing the same file twice
    re-runs its top-level declarations.
    """
    file_path = Path(path)
    module_name = f"_intentest_{file_path.stem.replace('.', '_')}_{uuid4().hex[:8]}"
    spec = importlib.util.spec_from_file_location(module_name, str(file_path))
    if spec is None or spec.loader is None:
        raise IntentestError(f"Cannot import {file_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except IntentestError:
        raise
    except Exception as exc:
        raise IntentestError(
            f"Failed to import {file_path.name}: {exc}", cause=exc
        ) from exc
    finally:
        sys.modules.pop(module_name, None)

    return module
