"""Child-process entry point for sandboxed evalCode execution.

Run as a script in a fresh, isolated interpreter. Reads one JSON request
`{"code": "..."}` from stdin and writes one JSON response
`{"success", "result", "logs", "error"}` to stdout. Only the standard
library is used here.
"""

import builtins
import io
import json
import sys
import textwrap
import traceback

BLOCKED_MODULES = frozenset(
    {
        "socket",
        "_socket",
        "ssl",
        "_ssl",
        "select",
        "selectors",
        "http",
        "urllib",
        "ftplib",
        "smtplib",
        "telnetlib",
        "xmlrpc",
        "subprocess",
        "_posixsubprocess",
        "multiprocessing",
        "concurrent",
        "asyncio",
        "threading",
        "ctypes",
        "pty",
    }
)

NETWORK_EVENTS = frozenset(
    {
        "socket.__new__",
        "socket.bind",
        "socket.connect",
        "socket.getaddrinfo",
        "socket.gethostbyname",
        "socket.sendto",
    }
)

PROCESS_EVENTS = frozenset(
    {
        "subprocess.Popen",
        "os.system",
        "os.exec",
        "os.posix_spawn",
        "os.spawn",
        "os.fork",
        "os.forkpty",
        "os.startfile",
        "pty.spawn",
        "ctypes.dlopen",
    }
)


class _LogCapture(io.TextIOBase):
    """Collects written text as log lines, optionally prefixed."""

    def __init__(self, logs, prefix=""):
        self._logs = logs
        self._prefix = prefix
        self._buffer = ""

    def writable(self):
        return True

    def write(self, text):
        self._buffer += text
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._logs.append(self._prefix + line)
        return len(text)

    def flush(self):
        if self._buffer:
            self._logs.append(self._prefix + self._buffer)
            self._buffer = ""


def _audit(event, args):
    """Audit hook refusing network and process events, however they are reached."""
    if event in NETWORK_EVENTS:
        raise PermissionError("Network access is disabled in the sandbox")
    if event in PROCESS_EVENTS:
        raise PermissionError("Starting processes is disabled in the sandbox")


def _lock_down():
    """Disable network access and process/cross-context modules.

    The import guard gives a readable error for the common case; the audit
    hook also covers modules reached through importlib or sys.modules.
    Audit hooks cannot be removed once installed.
    """
    original_import = builtins.__import__

    def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level == 0 and name.split(".")[0] in BLOCKED_MODULES:
            raise ImportError(f"Module '{name}' is not available in the sandbox")
        return original_import(name, globals, locals, fromlist, level)

    builtins.__import__ = guarded_import
    sys.addaudithook(_audit)


def _render(value):
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def run(code):
    """Execute a function body and return the response dict."""
    logs = []
    source = "def __sandboxed__():\n" + textwrap.indent(code or "pass", "    ")
    stdout, stderr = sys.stdout, sys.stderr
    out_capture = _LogCapture(logs)
    err_capture = _LogCapture(logs, prefix="ERROR: ")

    try:
        compiled = compile(source, "<evalCode>", "exec")
        namespace = {"__name__": "__sandbox__"}
        sys.stdout, sys.stderr = out_capture, err_capture
        try:
            exec(compiled, namespace)
            value = namespace["__sandboxed__"]()
        finally:
            out_capture.flush()
            err_capture.flush()
            sys.stdout, sys.stderr = stdout, stderr
        return {"success": True, "result": _render(value), "logs": logs, "error": None}
    except SyntaxError as e:
        return {"success": False, "result": None, "logs": logs, "error": f"SyntaxError: {e.msg}"}
    except Exception as e:
        last = traceback.extract_tb(e.__traceback__)[-1:]
        where = f" (line {last[0].lineno - 1})" if last and last[0].filename == "<evalCode>" else ""
        return {
            "success": False,
            "result": None,
            "logs": logs,
            "error": f"{type(e).__name__}: {e}{where}",
        }


def main():
    request = json.loads(sys.stdin.read() or "{}")
    out = sys.stdout
    _lock_down()
    response = run(request.get("code", ""))
    out.write(json.dumps(response))
    out.flush()


if __name__ == "__main__":
    main()
