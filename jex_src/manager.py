#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Jex manager for Docker image, container and project operations.
"""

import errno
import grp
import json
import os
import pwd
import re
import shlex
import shutil
import socket
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .environment import JexPaths, template_environment
from .models import JexConfig
from .runner import CommandRunner, confirm, console, error_exit, logger

CONTAINER_NAME = "jekyll-container"
CONTAINER_SITE_DIR = "/site"
CONTAINER_PORT = 4000
PROJECT_MARKER = "_config.yml"
POSTS_DIR = "_posts"
POST_CATEGORY = "blog"


def slugify(title: str) -> str:
    """Lower-case, hyphen-delimited, filesystem-safe form of a title"""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _accepts_connections(family: int, host: str, port: int) -> bool:
    try:
        s = socket.socket(family, socket.SOCK_STREAM)
    except OSError:
        return False
    with s:
        s.settimeout(1)
        return s.connect_ex((host, port)) == 0


def is_port_listening(port: int) -> bool:
    """Return True when a TCP listener holds the port on any local address.

    Test-binds the IPv4 and IPv6 wildcards; EADDRINUSE means some socket is
    listening on the port. Ports we may not bind (privileged ports for a
    normal user) fall back to connecting to the loopback addresses.
    """
    for family, host in ((socket.AF_INET, "0.0.0.0"), (socket.AF_INET6, "::")):
        try:
            s = socket.socket(family, socket.SOCK_STREAM)
        except OSError:
            # No IPv6 on this host
            continue
        with s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if family == socket.AF_INET6:
                s.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
            try:
                s.bind((host, port))
            except OSError as e:
                if e.errno == errno.EADDRINUSE:
                    return True
                if e.errno == errno.EADDRNOTAVAIL:
                    continue
                return _accepts_connections(
                    socket.AF_INET, "127.0.0.1", port
                ) or _accepts_connections(socket.AF_INET6, "::1", port)
    return False


def current_user_spec() -> str:
    """uid:gid of the invoking user, for docker -u and chown"""
    return f"{os.getuid()}:{os.getgid()}"


def _yaml_quote(value: str) -> str:
    # JSON string syntax is a valid YAML double-quoted scalar
    return json.dumps(value, ensure_ascii=False)


# ============================================================================
# Core Jex Manager
# ============================================================================


class JexManager:
    """Manages the Jekyll image, the jekyll-container and the site project"""

    def __init__(
        self,
        config: JexConfig,
        paths: JexPaths,
        project_root: Optional[Path] = None,
        runner: Optional[CommandRunner] = None,
        assume_yes: bool = False,
    ):
        self.config = config
        self.paths = paths
        self.project_root = (project_root or Path.cwd()).resolve()
        self.runner = runner or CommandRunner()
        self.assume_yes = assume_yes

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _docker_run_base(self) -> list[str]:
        return [
            "docker",
            "run",
            "--rm",
            "-v",
            f"{self.project_root}:{CONTAINER_SITE_DIR}",
            "-u",
            current_user_spec(),
        ]

    def _install_template(self, name: str, dest: Path) -> None:
        shutil.copyfile(self.paths.template_path(name), dest)

    def _owned_by_user(self, path: Path) -> bool:
        return path.stat().st_uid == os.getuid()

    def _port_in_use_check(self) -> None:
        if is_port_listening(self.config.jekyll_port):
            error_exit(
                f"Port {self.config.jekyll_port} is already in use. "
                f"Please change the port in {self.paths.config_path} "
                "or stop the service using this port."
            )

    def _stop_existing_container(self) -> None:
        if self.container_exists():
            console.print(
                f"[yellow]Container '{CONTAINER_NAME}' already exists. "
                "Stopping it first...[/yellow]"
            )
            self.stop()

    # ------------------------------------------------------------------
    # Image
    # ------------------------------------------------------------------

    def image_exists(self) -> bool:
        result = self.runner.run(
            ["docker", "image", "inspect", self.config.docker_image], quiet=True
        )
        return result.returncode == 0

    def build(self, force: bool = False) -> None:
        """Build the Jekyll image unless it already exists"""
        image = self.config.docker_image
        console.print("[blue]Building Jekyll Docker image...[/blue]")
        logger.info(f"Building Jekyll Docker image: {image}")

        if not force and self.image_exists():
            console.print(
                f"[yellow]Image {image} already exists. "
                "Use 'build-image --force' to rebuild.[/yellow]"
            )
            return

        dockerfile = self.project_root / "Dockerfile"
        if not dockerfile.exists():
            console.print("[yellow]Dockerfile not found. Using template...[/yellow]")
            self._install_template("Dockerfile", dockerfile)

        result = self.runner.run(
            ["docker", "build", "-t", image, str(self.project_root)]
        )
        if result.returncode != 0:
            error_exit("Failed to build Docker image.")
        console.print("[green]Image built successfully![/green]")

    def remove_image(self) -> None:
        console.print("[red]Warning: This will remove the Jekyll Docker image.[/red]")
        if not confirm("Do you want to continue?", self.assume_yes):
            logger.info("Image removal canceled by user")
            console.print("[blue]Operation canceled.[/blue]")
            return

        logger.info(f"Removing Docker image: {self.config.docker_image}")
        self.runner.run(["docker", "rmi", self.config.docker_image])
        console.print("[green]Image removed.[/green]")

    # ------------------------------------------------------------------
    # Container
    # ------------------------------------------------------------------

    def container_exists(self) -> bool:
        result = self.runner.run(
            ["docker", "ps", "-a", "--format", "{{.Names}}"], quiet=True
        )
        if result.returncode != 0:
            return False
        names = (result.stdout or "").splitlines()
        return CONTAINER_NAME in (name.strip() for name in names)

    def serve(self) -> None:
        """Run the Jekyll server attached to the terminal"""
        console.print("[blue]Starting Jekyll server with live reload...[/blue]")
        logger.info(
            f"Starting Jekyll server with live reload on port {self.config.jekyll_port}"
        )

        self._stop_existing_container()
        self._port_in_use_check()

        cmd = self._docker_run_base() + [
            "-p",
            f"{self.config.jekyll_port}:{CONTAINER_PORT}",
            self.config.docker_image,
        ]
        result = self.runner.run(cmd, stream=True)
        if result.returncode != 0:
            error_exit("Failed to start Jekyll server.")

    def serve_detached(self) -> None:
        """Run the Jekyll server in the background as jekyll-container"""
        console.print("[blue]Starting Jekyll server in detached mode...[/blue]")
        logger.info(
            f"Starting Jekyll server in detached mode on port {self.config.jekyll_port}"
        )

        self._stop_existing_container()
        self._port_in_use_check()

        cmd = [
            "docker",
            "run",
            "-d",
            "--name",
            CONTAINER_NAME,
            "-v",
            f"{self.project_root}:{CONTAINER_SITE_DIR}",
            "-u",
            current_user_spec(),
            "-p",
            f"{self.config.jekyll_port}:{CONTAINER_PORT}",
            self.config.docker_image,
        ]
        result = self.runner.run(cmd)
        if result.returncode != 0:
            error_exit("Failed to start Jekyll server in detached mode.")

        console.print(f"[green]Server running at {self.config.url}[/green]")
        console.print("[yellow]To stop server: jex stop[/yellow]")

    def stop(self) -> None:
        console.print("[blue]Stopping Jekyll server...[/blue]")
        logger.info("Stopping Jekyll server")

        if not self.container_exists():
            console.print("[yellow]No running Jekyll container found.[/yellow]")
            return

        result = self.runner.run_all(
            [
                ["docker", "stop", CONTAINER_NAME],
                ["docker", "rm", CONTAINER_NAME],
            ]
        )
        if result.returncode != 0:
            error_exit("Failed to stop Jekyll server.")
        console.print("[green]Server stopped successfully.[/green]")

    def exec(self, command: str) -> None:
        """Run a shell command in a disposable container"""
        if not command or not command.strip():
            error_exit("Please provide a command to execute")

        self.fix_bundler_permissions(self.project_root)

        console.print("[blue]Executing command in Jekyll container...[/blue]")
        logger.info(f"Executing command in Jekyll container: {command}")

        cmd = self._docker_run_base() + [self.config.docker_image, "sh", "-c", command]
        result = self.runner.run(cmd)
        if result.returncode != 0:
            error_exit("Command execution failed.")

    def clean(self) -> None:
        console.print("[red]Warning: This will remove all Jekyll containers.[/red]")
        if not confirm("Do you want to continue?", self.assume_yes):
            logger.info("Container cleanup canceled by user")
            console.print("[blue]Clean up canceled.[/blue]")
            return

        logger.info("Cleaning up Jekyll containers")
        self.runner.run(["docker", "stop", CONTAINER_NAME], quiet=True)
        self.runner.run(["docker", "rm", CONTAINER_NAME], quiet=True)
        console.print("[green]Containers cleaned up.[/green]")

    def clean_all(self) -> None:
        self.clean()
        self.remove_image()

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def _manual_chown_hint(self, directory: Path) -> None:
        try:
            owner = (
                f"{pwd.getpwuid(os.getuid()).pw_name}:"
                f"{grp.getgrgid(os.getgid()).gr_name}"
            )
        except KeyError:
            owner = current_user_spec()
        console.print(
            f"[yellow]You may need to manually run: chown -R {owner} {directory}[/yellow]"
        )

    def fix_permissions(self, directory: Optional[Path] = None) -> None:
        """chown a directory tree to the invoking user and group.

        When the project marker is owned by someone else (typically root after
        a container run) the chown goes through sudo, then a plain chown if that
        fails. Failures leave a manual remediation hint instead of aborting.
        """
        directory = Path(directory) if directory is not None else self.project_root
        console.print(f"[yellow]Fixing file permissions in {directory}...[/yellow]")
        logger.info(f"Fixing file permissions in {directory}")

        chown = ["chown", "-R", current_user_spec(), str(directory)]
        marker = directory / PROJECT_MARKER

        if marker.is_file() and not self._owned_by_user(marker):
            if shutil.which("sudo"):
                result = self.runner.run(["sudo"] + chown)
                if result.returncode != 0:
                    logger.warning("sudo chown failed, retrying without sudo")
                    result = self.runner.run(chown)
            else:
                logger.warning("Some files owned by root, but sudo not available")
                console.print(
                    "[red]Warning: Some files may be owned by root. "
                    "Unable to use sudo to fix.[/red]"
                )
                result = self.runner.run(chown)
        else:
            result = self.runner.run(chown)

        if result.returncode != 0:
            self._manual_chown_hint(directory)

    def fix_bundler_permissions(self, directory: Optional[Path] = None) -> None:
        """Make the local .bundle directory writable by the container user"""
        directory = Path(directory) if directory is not None else self.project_root
        console.print(f"[yellow]Fixing bundler permissions in {directory}...[/yellow]")
        logger.info(f"Fixing bundler permissions in {directory}")

        bundle_dir = directory / ".bundle"
        bundle_dir.mkdir(parents=True, exist_ok=True)

        for cmd in (
            ["chown", "-R", current_user_spec(), str(bundle_dir)],
            ["chmod", "-R", "755", str(bundle_dir)],
        ):
            if self.runner.run(cmd).returncode != 0:
                logger.warning(f"Could not adjust {bundle_dir}; continuing")

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Scaffold a Jekyll site in the project directory"""
        console.print("[blue]Initializing new Jekyll project...[/blue]")
        logger.info(f"Initializing new Jekyll project in {self.project_root}")

        dockerfile = self.project_root / "Dockerfile"
        if not dockerfile.exists():
            console.print("[yellow]Creating Dockerfile...[/yellow]")
            self._install_template("Dockerfile", dockerfile)

        gitignore = self.project_root / ".gitignore"
        if not gitignore.exists():
            console.print("[yellow]Creating .gitignore...[/yellow]")
            self._install_template("gitignore", gitignore)

        if not self.image_exists():
            self.build()

        cmd = self._docker_run_base() + [
            self.config.docker_image,
            "sh",
            "-c",
            "jekyll new . --force && bundle install",
        ]
        result = self.runner.run(cmd)
        if result.returncode != 0:
            error_exit("Failed to create Jekyll site.")

        marker = self.project_root / PROJECT_MARKER
        if marker.is_file() and not self._owned_by_user(marker):
            console.print("[yellow]Fixing file ownership...[/yellow]")
            self.fix_permissions(self.project_root)

        console.print("[green]Jekyll project initialized successfully![/green]")
        console.print("[yellow]To start your Jekyll server, run:[/yellow]")
        console.print("jex serve")
        console.print(f"\n[green]You can access your site at:[/green] {self.config.url}")

    def new_post(self, title: str, force: bool = False) -> Path:
        """Write _posts/<date>-<slug>.md with default front matter"""
        if not title or not title.strip():
            error_exit("Please provide a post title")

        slug = slugify(title)
        if not slug:
            error_exit("Post title must contain at least one letter or digit")

        now = datetime.now()
        date = now.strftime("%Y-%m-%d")
        posts_dir = self.project_root / POSTS_DIR
        post_path = posts_dir / f"{date}-{slug}.md"
        rel_path = post_path.relative_to(self.project_root)

        if post_path.exists() and not force:
            error_exit(f"Post already exists: {rel_path}. Use --force to overwrite.")

        posts_dir.mkdir(parents=True, exist_ok=True)

        console.print(f"[blue]Creating new post: {rel_path}[/blue]")
        logger.info(f"Creating new post: {rel_path}")

        env = template_environment()
        env.filters["yaml_quote"] = _yaml_quote
        content = env.get_template("post.md.jinja2").render(
            title=title,
            date=date,
            time=now.strftime("%H:%M:%S"),
            category=POST_CATEGORY,
        )
        post_path.write_text(content, encoding="utf-8")

        console.print("[green]Post created successfully![/green]")
        console.print(f"[yellow]Edit this file: {rel_path}[/yellow]")
        return post_path

    def add_gem(self, name: str) -> None:
        if not name or not name.strip():
            error_exit("Please provide a gem name")

        console.print(f"[blue]Adding gem: {name}[/blue]")
        logger.info(f"Adding gem: {name}")

        self.exec(f"bundle add {shlex.quote(name.strip())}")

        console.print("[green]Gem added successfully![/green]")
        console.print(
            "[yellow]Remember to restart your Jekyll server "
            "for changes to take effect.[/yellow]"
        )

    def open_site(self) -> None:
        """Open the site in the host browser, starting the server if needed"""
        url = self.config.url
        console.print("[blue]Opening Jekyll site in browser...[/blue]")
        logger.info(f"Opening Jekyll site in browser: {url}")

        if not is_port_listening(self.config.jekyll_port):
            console.print(
                "[yellow]Jekyll server doesn't appear to be running "
                f"on port {self.config.jekyll_port}.[/yellow]"
            )
            if not confirm("Would you like to start it now?", self.assume_yes):
                console.print("[blue]Operation canceled.[/blue]")
                return
            self.serve_detached()

        opener = None
        if sys.platform == "darwin":
            opener = "open"
        elif sys.platform.startswith("linux") and shutil.which("xdg-open"):
            opener = "xdg-open"

        if opener is None:
            console.print(f"[yellow]Please open {url} in your browser[/yellow]")
            return
        self.runner.run([opener, url])
