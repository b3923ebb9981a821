"""Terraform pack: destroying managed infrastructure and tampering with state."""

from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command


def create_pack() -> Pack:
    return Pack(
        id="infrastructure.terraform",
        name="Terraform",
        description=(
            "Protects against destructive Terraform operations like destroy, "
            "taint, and state manipulation"
        ),
        keywords=("terraform", "destroy", "taint", "state"),
        safe_patterns=(
            safe_command("terraform-plan", r"terraform\s+plan\b", exclude=r"\s-destroy\b"),
            safe_command("terraform-init", r"terraform\s+init\b"),
            safe_command("terraform-validate", r"terraform\s+validate\b"),
            safe_command("terraform-fmt", r"terraform\s+fmt\b"),
            safe_command("terraform-show", r"terraform\s+show\b"),
            safe_command("terraform-output", r"terraform\s+output\b"),
            safe_command("terraform-state-list", r"terraform\s+state\s+list\b"),
            safe_command("terraform-state-show", r"terraform\s+state\s+show\b"),
            safe_command("terraform-version", r"terraform\s+version\b"),
        ),
        destructive_patterns=(
            destructive_pattern(
                "destroy",
                r"terraform\s+destroy\b",
                "terraform destroy removes ALL managed infrastructure. "
                "Use 'terraform plan -destroy' first.",
                Severity.CRITICAL,
                explanation=(
                    "terraform destroy deletes every resource in the current state: databases, "
                    "buckets and networks included.\n\nPreview first:\n  terraform plan -destroy"
                ),
            ),
            destructive_pattern(
                "plan-destroy",
                r"terraform\s+plan\s+.*-destroy\b",
                "terraform plan -destroy shows what would be destroyed. "
                "Review carefully before applying.",
                Severity.MEDIUM,
            ),
            destructive_pattern(
                "apply-auto-approve",
                r"terraform\s+apply\s+.*-auto-approve\b",
                "terraform apply -auto-approve skips confirmation. Remove -auto-approve for safety.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "taint",
                r"terraform\s+taint\b",
                "terraform taint marks a resource to be destroyed and recreated on next apply.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "state-rm",
                r"terraform\s+state\s+rm\b",
                "terraform state rm removes resource from state without destroying it. "
                "Resource becomes unmanaged.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "state-mv",
                r"terraform\s+state\s+mv\b",
                "terraform state mv moves resources in state. "
                "Incorrect moves can cause resource recreation.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "force-unlock",
                r"terraform\s+force-unlock\b",
                "terraform force-unlock removes state lock. Only use if lock is stale.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "workspace-delete",
                r"terraform\s+workspace\s+delete\b",
                "terraform workspace delete removes a workspace. Ensure it's not in use.",
                Severity.MEDIUM,
            ),
        ),
    )
