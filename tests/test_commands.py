"""Tests for the command runner and GitHub client."""

import json
import sys

import pytest

from services.github_client import GitHubClient, RepositoryCreationError
from services.shell import CommandError, CommandResult, run_command


@pytest.mark.asyncio
async def test_run_command_captures_output(tmp_path):
    result = await run_command([sys.executable, "-c", "print('hello')"], cwd=str(tmp_path))

    assert result.returncode == 0
    assert result.stdout.strip() == "hello"


@pytest.mark.asyncio
async def test_run_command_raises_on_failure():
    with pytest.raises(CommandError) as excinfo:
        await run_command([sys.executable, "-c", "import sys; sys.stderr.write('nope'); sys.exit(3)"])

    assert excinfo.value.result.returncode == 3
    assert "nope" in str(excinfo.value)


@pytest.mark.asyncio
async def test_run_command_missing_binary():
    with pytest.raises(CommandError) as excinfo:
        await run_command(["definitely-not-a-real-binary-xyz"])

    assert excinfo.value.result.returncode == 127


@pytest.mark.asyncio
async def test_create_repository_sends_mutation(settings, make_runner):
    runner = make_runner()
    client = GitHubClient(settings, runner=runner)

    url = await client.create_repository("demo-strings", "String helpers")

    assert url == "https://github.com/ada/demo-strings.git"
    (args, _), = runner.calls
    assert args[:3] == ("gh", "api", "graphql")
    assert "name=demo-strings" in args
    assert "ownerId=O_kgDOB123" in args
    assert "visibility=PUBLIC" in args


@pytest.mark.asyncio
async def test_create_repository_graphql_errors(settings):
    async def runner(args, cwd=None):
        payload = {"errors": [{"message": "Name already exists on this account"}]}
        return CommandResult(tuple(args), 0, json.dumps(payload), "")

    with pytest.raises(RepositoryCreationError, match="Name already exists"):
        await GitHubClient(settings, runner=runner).create_repository("demo-strings")
