import os
import re
from datetime import datetime

import pytest
from typer.testing import CliRunner

from conftest import PS_NAMES
from jex_src import __version__
from jex_src.commands import app

runner = CliRunner()

LOG_LINE = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[(INFO|WARN|ERROR)\] .+$")


@pytest.fixture
def cli(jex_home, project, fake_run, installed, port_probe):
    def invoke(*args, input=None):
        return runner.invoke(app, list(args), input=input)

    return invoke


def test_no_arguments_shows_help_and_bootstraps(cli, jex_home, fake_run):
    result = cli()

    assert result.exit_code == 0, result.output
    assert f"v{__version__}" in result.output
    assert "AVAILABLE COMMANDS" in result.output
    assert "serve-detached" in result.output
    assert "Docker Image: jekyll-site" in result.output
    assert "Jekyll Port:  4000" in result.output
    assert (jex_home / "config").is_file()
    assert (jex_home / "jex.log").is_file()
    assert (jex_home / "templates" / "Dockerfile").is_file()
    assert (jex_home / "templates" / "gitignore").is_file()
    assert fake_run.calls == []


def test_help_shows_configured_values(cli, jex_home):
    cli("version")
    (jex_home / "config").write_text(
        'DOCKER_IMAGE="blog-image"\nJEKYLL_PORT=4100\n', encoding="utf-8"
    )

    result = cli("help")

    assert result.exit_code == 0
    assert "Docker Image: blog-image" in result.output
    assert "Jekyll Port:  4100" in result.output


@pytest.mark.parametrize("flag", ["--help", "-h"])
def test_help_flags_show_usage_summary(cli, jex_home, fake_run, flag):
    result = cli(flag)

    assert result.exit_code == 0, result.output
    assert "AVAILABLE COMMANDS" in result.output
    assert "Docker Image: jekyll-site" in result.output
    assert "Jekyll Port:  4000" in result.output
    assert (jex_home / "config").is_file()
    assert fake_run.calls == []


def test_help_flag_works_without_docker(cli, monkeypatch):
    monkeypatch.setattr("shutil.which", lambda name: None)

    result = cli("--help")

    assert result.exit_code == 0
    assert "Docker Image:" in result.output


def test_second_run_does_not_recreate_state(cli, jex_home):
    cli("version")
    cli("version")

    log = (jex_home / "jex.log").read_text(encoding="utf-8")
    assert log.count("JEX directory structure created") == 1
    assert all(LOG_LINE.match(line) for line in log.splitlines())


def test_version(cli):
    result = cli("version")

    assert result.exit_code == 0
    assert f"jex (Jekyll Execution Script) v{__version__}" in result.output


def test_info_commands_work_without_docker(cli, monkeypatch):
    monkeypatch.setattr("shutil.which", lambda name: None)

    assert cli("version").exit_code == 0
    assert cli("help").exit_code == 0
    assert cli().exit_code == 0


def test_operations_require_docker(cli, monkeypatch, fake_run, jex_home):
    monkeypatch.setattr("shutil.which", lambda name: None)

    result = cli("serve")

    assert result.exit_code == 1
    assert "Docker is not installed" in result.output
    assert fake_run.calls == []
    assert "[ERROR] Docker not found in PATH" in (jex_home / "jex.log").read_text(
        encoding="utf-8"
    )


def test_invalid_config_aborts(cli, jex_home):
    cli("version")
    (jex_home / "config").write_text("JEKYLL_PORT=not-a-port\n", encoding="utf-8")

    result = cli("stop")

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_unknown_command_fails(cli):
    result = cli("deploy")
    assert result.exit_code != 0


def test_init_in_empty_directory(cli, fake_run, project):
    fake_run.respond("docker", "image", "inspect", returncode=1)

    result = cli("init")

    assert result.exit_code == 0, result.output
    assert (project / "Dockerfile").is_file()
    assert (project / ".gitignore").is_file()
    assert fake_run.ran("docker", "build")
    scaffold = fake_run.find("docker", "run")
    assert fake_run.calls.index(scaffold) > fake_run.calls.index(
        fake_run.find("docker", "build")
    )
    assert "jex serve" in result.output


def test_build_image_existing_is_a_no_op(cli, fake_run):
    result = cli("build-image")

    assert result.exit_code == 0
    assert "already exists" in result.output
    assert not fake_run.ran("docker", "build")


def test_build_image_force(cli, fake_run):
    result = cli("build-image", "--force")

    assert result.exit_code == 0, result.output
    assert fake_run.ran("docker", "build", "-t", "jekyll-site")


@pytest.mark.parametrize("command", ["serve", "serve-detached"])
def test_serve_refuses_busy_port(cli, fake_run, port_probe, command):
    port_probe.listening = True

    result = cli(command)

    assert result.exit_code == 1
    assert "already in use" in result.output
    assert not fake_run.ran("docker", "run")


def test_serve_uses_configured_port(cli, fake_run, jex_home, port_probe):
    cli("version")
    (jex_home / "config").write_text("JEKYLL_PORT=4321\n", encoding="utf-8")

    result = cli("serve-detached")

    assert result.exit_code == 0, result.output
    assert port_probe.ports == [4321]
    assert "4321:4000" in fake_run.find("docker", "run")
    assert "http://localhost:4321" in result.output


def test_stop_without_container(cli, fake_run):
    result = cli("stop")

    assert result.exit_code == 0
    assert not fake_run.ran("docker", "stop")
    assert not fake_run.ran("docker", "rm")


def test_stop_with_container(cli, fake_run):
    fake_run.respond(*PS_NAMES, stdout="jekyll-container\n")

    result = cli("stop")

    assert result.exit_code == 0
    assert fake_run.ran("docker", "stop", "jekyll-container")
    assert fake_run.ran("docker", "rm", "jekyll-container")


def test_new_post_joins_words(cli, project):
    result = cli("new-post", "My", "First", "Post")

    assert result.exit_code == 0, result.output
    today = datetime.now().strftime("%Y-%m-%d")
    post = project / "_posts" / f"{today}-my-first-post.md"
    assert post.is_file()
    assert 'title: "My First Post"' in post.read_text(encoding="utf-8")


def test_new_post_empty_title_writes_nothing(cli, project):
    result = cli("new-post", "")

    assert result.exit_code == 1
    assert "Please provide a post title" in result.output
    assert not (project / "_posts").exists()


def test_new_post_force_overwrites(cli, project):
    assert cli("new-post", "Twice").exit_code == 0
    assert cli("new-post", "Twice").exit_code == 1
    assert cli("new-post", "--force", "Twice").exit_code == 0


@pytest.mark.parametrize("args", [("exec", ""), ("exec",), ("add-gem", ""), ("add-gem",)])
def test_missing_argument_runs_no_process(cli, fake_run, args):
    result = cli(*args)

    assert result.exit_code == 1
    assert fake_run.calls == []


def test_exec_passes_options_through(cli, fake_run):
    result = cli("exec", "bundle", "exec", "jekyll", "build", "--drafts")

    assert result.exit_code == 0, result.output
    assert fake_run.find("docker", "run")[-1] == "bundle exec jekyll build --drafts"


def test_recorded_ids_do_not_change_container_user(cli, fake_run, jex_home):
    cli("version")
    (jex_home / "config").write_text("USER_ID=12345\nGROUP_ID=23456\n", encoding="utf-8")

    result = cli("exec", "jekyll", "build")

    assert result.exit_code == 0, result.output
    run = fake_run.find("docker", "run")
    assert run[run.index("-u") + 1] == f"{os.getuid()}:{os.getgid()}"


def test_add_gem(cli, fake_run):
    result = cli("add-gem", "jekyll-seo-tag")

    assert result.exit_code == 0, result.output
    assert fake_run.find("docker", "run")[-1] == "bundle add jekyll-seo-tag"
    assert "Gem added successfully!" in result.output


def test_fix_permissions_with_directory(cli, fake_run, project):
    (project / "assets").mkdir()

    result = cli("fix-permissions", "assets")

    assert result.exit_code == 0, result.output
    assert fake_run.calls == [
        ["chown", "-R", f"{os.getuid()}:{os.getgid()}", "assets"]
    ]


def test_clean_prompts(cli, fake_run):
    result = cli("clean", input="n\n")

    assert result.exit_code == 0
    assert "Clean up canceled." in result.output
    assert fake_run.calls == []


def test_clean_all_with_yes_flag(cli, fake_run):
    result = cli("--yes", "clean-all")

    assert result.exit_code == 0, result.output
    assert fake_run.ran("docker", "stop", "jekyll-container")
    assert fake_run.ran("docker", "rmi", "jekyll-site")


def test_open_declined(cli, fake_run):
    result = cli("open", input="n\n")

    assert result.exit_code == 0
    assert fake_run.calls == []
