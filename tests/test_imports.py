"""
Smoke tests to verify all modules can be imported.
"""

def test_import_sandbox():
    import sandbox
    assert hasattr(sandbox, '__version__')


def test_import_evaluator():
    import evaluator
    assert hasattr(evaluator, '__version__')


def test_import_debugger_core():
    import debugger_core
    assert hasattr(debugger_core, '__version__')


def test_import_cli():
    from debugger_core.cli import app
    assert app is not None


def test_import_guard():
    from sandbox.guard import CallGuard, TRUSTED_GUARD_CODES
    assert CallGuard.call.__code__ in TRUSTED_GUARD_CODES
