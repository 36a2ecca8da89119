import importlib.util
import sys
import builtins
from pathlib import Path

def load_module():
    script = Path(__file__).resolve().parents[1] / "leak-monitor.py"
    spec = importlib.util.spec_from_file_location("leak_monitor", script)
    mod = importlib.util.module_from_spec(spec)
    sys.modules["leak_monitor"] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod

# Expose helper for tests without explicit imports.
builtins.load_module = load_module


SAMPLE_PAYLOAD = (
    "SHT,1,Soil Stack,Detected,22.2,22.2,22.3,51.7%,51.7%,51.6%\r\n"
    "SHT,2,Kitchen Sink,Detected,19.0,19.5,20.0,60.0%,61.0%,62.0%\r\n"
)
builtins.SAMPLE_PAYLOAD = SAMPLE_PAYLOAD
