"""
Text formatting of analysis results for console output.
"""

from typing import Any, Dict, List, Optional


def _fmt(value: Optional[float], spec: str = ".3f") -> str:
    if value is None:
        return "-"
    return format(value, spec)


def _table(headers: List[str], rows: List[List[str]]) -> str:
    widths = [max(len(h), *(len(r[i]) for r in rows)) if rows else len(h) for i, h in enumerate(headers)]
    lines = ["  ".join(h.rjust(w) if i else h.ljust(w) for i, (h, w) in enumerate(zip(headers, widths)))]
    lines.append("-" * (sum(widths) + 2 * (len(widths) - 1)))
    for row in rows:
        lines.append("  ".join(c.rjust(w) if i else c.ljust(w) for i, (c, w) in enumerate(zip(row, widths))))
    return "\n".join(lines)


def _format_header(model: Dict[str, Any]) -> List[str]:
    groups = ", ".join(f"{name}={size}" for name, size in model["groups"].items())
    return [
        f"Model: {model['formula']}  (family={model['family']}, link={model['link']})",
        f"Target: {model['target']}  |  {model['prob_mass']:.0%} credible interval  |  criterion: {model['criterion']}",
        f"Groups: {groups}  |  replications: {model['replications']}",
    ]


def _format_power(result: Dict[str, Any], summary: str) -> str:
    model, stats = result["model"], result["results"]
    lines = _format_header(model)
    lines.append("")

    power = stats["power"] * 100
    rows = [["Power", f"{power:.1f}%"], ["Mean interval width", _fmt(stats["mean_width"])]]
    if stats.get("proportion_below") is not None:
        rows.append([f"Width < {stats['width_threshold']:g}", f"{stats['proportion_below'] * 100:.1f}%"])
    rows.append(["Failed replications", f"{stats['n_failed']}/{stats['n_completed']} ({stats['failure_rate']:.1%})"])
    if summary == "long":
        rows.append(["Mean estimate", _fmt(stats["mean_estimate"])])
        rows.append(["Successful replications", str(stats["n_successful"])])
    lines.append(_table(["Statistic", "Value"], rows))

    lines.append("")
    status = "reached" if power >= model["target_power"] else "NOT reached"
    lines.append(f"Target power {model['target_power']:.0f}% {status}.")
    if stats["n_completed"] < stats["n_replications"]:
        lines.append(f"Warning: partial run ({stats['n_completed']}/{stats['n_replications']} replications).")
    return "\n".join(lines)


def _format_sample_size(result: Dict[str, Any], summary: str) -> str:
    model, stats = result["model"], result["results"]
    lines = _format_header(model)
    lines.append("")

    headers = ["Size/group", "Power", "Mean width"]
    below = stats.get("proportions_below")
    if below is not None:
        headers.append("Width below")
    if summary == "long":
        headers.append("Failed")

    rows = []
    for i, size in enumerate(stats["sample_sizes_tested"]):
        row = [str(size), f"{stats['powers'][i]:.1f}%", _fmt(stats["mean_widths"][i])]
        if below is not None:
            row.append("-" if below[i] is None else f"{below[i] * 100:.1f}%")
        if summary == "long":
            row.append(f"{stats['failure_rates'][i]:.1%}")
        rows.append(row)
    lines.append(_table(headers, rows))

    lines.append("")
    first = stats["first_achieved"]
    if first == -1:
        lines.append(f"Target power {model['target_power']:.0f}% not reached in the tested range.")
    else:
        lines.append(f"First size per group reaching {model['target_power']:.0f}% power: {first}")
    return "\n".join(lines)


def _format_results(analysis_type: str, result: Dict[str, Any], summary: str = "short") -> str:
    """Format a power or sample-size result dictionary as a text report.

    Args:
        analysis_type: ``"power"`` or ``"sample_size"``.
        result: Dictionary from ``build_power_result`` or
            ``build_sample_size_result``.
        summary: ``"short"`` or ``"long"`` (adds extra rows/columns).
    """
    if analysis_type == "power":
        return _format_power(result, summary)
    if analysis_type == "sample_size":
        return _format_sample_size(result, summary)
    raise ValueError(f"Unknown analysis type: {analysis_type!r}")
