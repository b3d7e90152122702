"""
Health grades for pNode metrics (success / warning / error).

Thresholds:
    uptime       >= 98 success, >= 95 warning
    performance  >= 90 success, >= 75 warning
    reputation   >= 8 success,  >= 5 warning   (0-10 scale)
"""

from typing import Dict

from pnodes.models import PNode, PNodeStatus

SUCCESS = "success"
WARNING = "warning"
ERROR = "error"

_STATUS_GRADES = {
    PNodeStatus.ACTIVE: SUCCESS,
    PNodeStatus.SYNCING: WARNING,
    PNodeStatus.INACTIVE: ERROR,
}


def _threshold_grade(value: float, good: float, fair: float) -> str:
    if value >= good:
        return SUCCESS
    if value >= fair:
        return WARNING
    return ERROR


def status_grade(status: PNodeStatus) -> str:
    return _STATUS_GRADES.get(status, "info")


def uptime_grade(uptime: float) -> str:
    return _threshold_grade(uptime, 98, 95)


def performance_grade(performance: float) -> str:
    return _threshold_grade(performance, 90, 75)


def reputation_grade(reputation: float) -> str:
    return _threshold_grade(reputation, 8, 5)


def grade_node(node: PNode) -> Dict[str, str]:
    return {
        "status": status_grade(node.status),
        "uptime": uptime_grade(node.uptime),
        "performance": performance_grade(node.performance),
        "reputation": reputation_grade(node.reputation),
    }
