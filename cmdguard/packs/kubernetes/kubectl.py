"""kubectl pack: namespace and workload deletion, node draining, scaling to zero."""

from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command

_DRY_RUN = r"--dry-run(?:=(?:client|server))?(?:\s|$)"


def create_pack() -> Pack:
    return Pack(
        id="kubernetes.kubectl",
        name="kubectl",
        description=(
            "Protects against destructive kubectl operations like delete namespace, "
            "drain, and mass deletion"
        ),
        keywords=("kubectl", "delete", "drain", "cordon", "taint"),
        safe_patterns=(
            safe_command("kubectl-get", r"kubectl\s+get\b"),
            safe_command("kubectl-describe", r"kubectl\s+describe\b"),
            safe_command("kubectl-logs", r"kubectl\s+logs\b"),
            safe_command("kubectl-dry-run", r"kubectl\s+.*" + _DRY_RUN),
            safe_command("kubectl-diff", r"kubectl\s+diff\b"),
            safe_command("kubectl-explain", r"kubectl\s+explain\b"),
            safe_command("kubectl-top", r"kubectl\s+top\b"),
            safe_command("kubectl-version", r"kubectl\s+version\b"),
        ),
        destructive_patterns=(
            destructive_pattern(
                "delete-namespace",
                r"kubectl\s+delete\s+(?:namespace|ns)\b",
                "kubectl delete namespace removes the entire namespace and ALL resources within it.",
                Severity.CRITICAL,
                explanation=(
                    "Deleting a namespace deletes every deployment, service, secret and "
                    "volume claim inside it.\n\n"
                    "Safer alternative:\n"
                    "  kubectl delete deployment <name> -n <namespace>"
                ),
            ),
            destructive_pattern(
                "delete-all",
                r"kubectl\s+delete\s+.*--all\b",
                "kubectl delete --all removes ALL resources of that type. Use --dry-run=client first.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "delete-all-namespaces",
                r"kubectl\s+delete\s+.*(?:-A\b|--all-namespaces)",
                "kubectl delete with -A/--all-namespaces affects ALL namespaces. Very dangerous!",
                Severity.CRITICAL,
            ),
            destructive_pattern(
                "drain-node",
                r"kubectl\s+drain\b",
                "kubectl drain evicts all pods from a node. Ensure proper pod disruption budgets.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "cordon-node",
                r"kubectl\s+cordon\b",
                "kubectl cordon marks a node unschedulable. Existing pods continue running.",
                Severity.MEDIUM,
            ),
            destructive_pattern(
                "taint-noexecute",
                r"kubectl\s+taint\s+.*:NoExecute",
                "kubectl taint with NoExecute evicts existing pods that don't tolerate the taint.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "delete-workload",
                r"kubectl\s+delete\s+(?:deployment|statefulset|daemonset|replicaset)\b.*",
                "kubectl delete deployment/statefulset/daemonset removes the workload. "
                "Use --dry-run first.",
                Severity.HIGH,
                exclude=_DRY_RUN,
            ),
            destructive_pattern(
                "delete-pvc",
                r"kubectl\s+delete\s+(?:pvc|persistentvolumeclaim)\b.*",
                "kubectl delete pvc may permanently delete data if ReclaimPolicy is Delete.",
                Severity.CRITICAL,
                exclude=_DRY_RUN,
            ),
            destructive_pattern(
                "delete-pv",
                r"kubectl\s+delete\s+(?:pv|persistentvolume)\b.*",
                "kubectl delete pv may permanently delete the underlying storage.",
                Severity.CRITICAL,
                exclude=_DRY_RUN,
            ),
            destructive_pattern(
                "scale-to-zero",
                r"kubectl\s+scale\s+.*--replicas=0\b",
                "kubectl scale --replicas=0 stops all pods for the workload.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "delete-force",
                r"kubectl\s+delete\s+.*--force.*--grace-period=0"
                r"|kubectl\s+delete\s+.*--grace-period=0.*--force",
                "kubectl delete --force --grace-period=0 immediately removes resources "
                "without graceful shutdown.",
                Severity.CRITICAL,
            ),
        ),
    )
