"""Nox sessions for the email-dispatch worker."""

import nox

nox.options.sessions = ["tests", "lint", "typecheck", "check_isolation"]


@nox.session(python=["3.13"])
@nox.parametrize("suite", ["unit", "property", "integration"])
def tests(session: nox.Session, suite: str) -> None:
    """Run one test suite directory.

    Coverage is enforced on the unit suite only; the property and
    integration suites run without it.
    """
    session.run("uv", "sync", "--extra", "test", external=True)
    args = ["pytest", f"tests/{suite}"]
    if suite == "unit":
        args += ["--cov=email_dispatch", "--cov-report=term-missing:skip-covered", "--cov-fail-under=80"]
    session.run(*args, *session.posargs)


@nox.session(python=["3.13"])
def lint(session: nox.Session) -> None:
    """Run ruff checks without rewriting files."""
    session.run("uv", "sync", "--extra", "dev", external=True)
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=["3.13"])
def typecheck(session: nox.Session) -> None:
    """Run basedpyright over src and tests."""
    session.run("uv", "sync", "--extra", "dev", "--extra", "test", external=True)
    session.run("uvx", "basedpyright@latest", external=True)


@nox.session(python=False)
def check_isolation(session: nox.Session) -> None:
    """Fail when domain, core or types modules import Redis, SMTP or HTTP clients."""
    session.run("python3", "scripts/check_adapter_isolation.py", external=True)
