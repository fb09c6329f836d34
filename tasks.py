# type: ignore
import os

from invoke import task


@task
def venv(ctx):
    """Create .venv and install wizlan with its test and dev extras."""
    ctx.run("uv venv")
    ctx.run('uv pip install -e ".[test,dev]"')


@task
def clean(ctx):
    """
    Remove untracked files (build output, caches, coverage data).
    Lists them first and asks for confirmation.
    """
    ctx.run("git clean -nfdx")

    response = (
        input("Are you sure you want to remove all untracked files? (y/n) [n]: ")
        .strip()
        .lower()
    )
    if response == "y":
        ctx.run("git clean -fdx")


@task
def lint(ctx):
    """Run ruff and mypy over the package."""
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """Run the test suite with coverage."""
    ctx.run("pytest --cov=wizlan --cov-report=term-missing", pty=True)


@task(help={"port": "UDP port for the mock device", "mac": "MAC address it reports"})
def mock(ctx, port=38899, mac="AA:BB:CC:DD:EE:FF"):
    """Run a mock device so discover/state/on/off can be tried without hardware."""
    ctx.run(f"wizlan mock --port {port} --mac {mac}", pty=True)


@task
def build_package(ctx):
    """Build sdist and wheel into dist/."""
    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task
def release(ctx):
    """Build the package and publish it to PyPI."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")

    print("Building package...")
    ctx.run("invoke build-package")

    print("Publishing to PyPI...")
    ctx.run(f"uv publish --token {token}")
