"""PGP Workbench Nox configuration"""
import nox


@nox.session
def lint(session):
    """Lint the package and tests."""
    session.install("pylint", "nox", ".")
    session.run("pylint", "noxfile.py")
    session.run("pylint", *session.posargs, "pgp_workbench")
    session.run("pylint", *session.posargs, "tests")


@nox.session
def tests(session):
    """Run the unit tests against an in-memory keyring."""
    session.install(".[test]")
    session.run("pytest", "-s", *session.posargs, "tests")


@nox.session
def serve(session):
    """Start the web front end locally."""
    session.install(".")
    session.run("flask", "--app", "pgp_workbench.web:create_app", "run")
