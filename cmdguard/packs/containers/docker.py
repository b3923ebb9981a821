"""Docker pack: pruning and forced removal of containers, images and volumes."""

from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command


def create_pack() -> Pack:
    return Pack(
        id="containers.docker",
        name="Docker",
        description=(
            "Protects against destructive Docker operations like system prune, "
            "volume prune, and force removal"
        ),
        keywords=("docker", "prune", "rmi", "volume"),
        safe_patterns=(
            safe_command("docker-ps", r"docker\s+ps\b"),
            safe_command("docker-images", r"docker\s+images\b"),
            safe_command("docker-logs", r"docker\s+logs\b"),
            safe_command("docker-inspect", r"docker\s+inspect\b"),
            safe_command("docker-build", r"docker\s+build\b"),
            safe_command("docker-pull", r"docker\s+pull\b"),
            safe_command("docker-stats", r"docker\s+stats\b"),
        ),
        destructive_patterns=(
            destructive_pattern(
                "system-prune",
                r"docker\s+system\s+prune",
                "docker system prune removes ALL unused containers, networks, images. "
                "Use 'docker system df' to preview.",
                Severity.HIGH,
                explanation=(
                    "docker system prune deletes every stopped container, unused network and "
                    "dangling image. With --volumes it also deletes unused volumes and their "
                    "data.\n\nPreview first:\n  docker system df"
                ),
            ),
            destructive_pattern(
                "volume-prune",
                r"docker\s+volume\s+prune",
                "docker volume prune removes ALL unused volumes and their data permanently.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "network-prune",
                r"docker\s+network\s+prune",
                "docker network prune removes ALL unused networks.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "image-prune",
                r"docker\s+image\s+prune",
                "docker image prune removes unused images. Use 'docker images' to review first.",
                Severity.MEDIUM,
            ),
            destructive_pattern(
                "container-prune",
                r"docker\s+container\s+prune",
                "docker container prune removes ALL stopped containers.",
                Severity.MEDIUM,
            ),
            destructive_pattern(
                "rm-force",
                r"docker\s+rm\s+.*(?:-[a-zA-Z0-9]*f|--force)",
                "docker rm -f forcibly removes containers, potentially losing data.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "rmi-force",
                r"docker\s+rmi\s+.*(?:-[a-zA-Z0-9]*f|--force)",
                "docker rmi -f forcibly removes images even if in use.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "volume-rm",
                r"docker\s+volume\s+rm",
                "docker volume rm permanently deletes volumes and their data.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "stop-all",
                r"docker\s+(?:stop|kill)\s+\$\(docker\s+ps",
                "Stopping/killing all containers can disrupt services. "
                "Be specific about which containers.",
                Severity.HIGH,
            ),
        ),
    )
