# awtsim/reports/report_generator.py
"""
Generate JSON/CSV/HTML reports for simulation runs.
"""
import os
from typing import Any, Dict, List, Sequence

from ..utils.io import save_csv, save_json
from ..utils.logger import setup_logger

logger = setup_logger("ReportGenerator")

REPORT_FORMATS = ('json', 'html', 'both')


def replicate_rows(outcomes: Sequence) -> List[Dict[str, Any]]:
    """Flatten replicate outcomes into one record per replicate."""
    rows = []
    for outcome in outcomes:
        row = {
            'replicate': outcome.index,
            'seed': outcome.seed,
            'status': outcome.status,
            'elapsed': outcome.elapsed,
            'error_type': outcome.error_type,
            'error': outcome.error,
        }
        results = outcome.results or {}
        for key in ('total_requests', 'arrived_count', 'connected_count', 'abandoned_count',
                    'completed_count', 'final_tick', 'ticks_processed', 'stale_events'):
            row[key] = results.get(key)
        for label, entry in results.get('metrics', {}).items():
            row[label] = entry['value']
            row[f'{label} on target'] = entry['on_target']
        rows.append(row)
    return rows


def event_rows(outcomes: Sequence) -> List[Dict[str, Any]]:
    """Flatten recorded lifecycle events, tagged with their replicate."""
    rows = []
    for outcome in outcomes:
        for event in outcome.events or []:
            rows.append({'replicate': outcome.index, **event})
    return rows


def generate_report(outcomes: Sequence, summary: Dict[str, Any], out_dir: str,
                    format: str = 'json') -> str:
    """
    Write the run summary, per-replicate table and event log; return path to the JSON file.

    Args:
        outcomes: Replicate outcomes
        summary: Result of ``aggregate_outcomes``
        out_dir: Output directory
        format: Output format ('json', 'html', or 'both')

    Returns:
        Path to main report file
    """
    if format not in REPORT_FORMATS:
        raise ValueError(f"Unknown report format: {format}")
    os.makedirs(out_dir, exist_ok=True)

    json_path = os.path.join(out_dir, "summary.json")
    save_json(summary, json_path)
    logger.info(f"Generated JSON report: {json_path}")

    csv_path = os.path.join(out_dir, "replicates.csv")
    save_csv(replicate_rows(outcomes), csv_path)
    logger.info(f"Generated replicate table: {csv_path}")

    events = event_rows(outcomes)
    if events:
        events_path = os.path.join(out_dir, "events.csv")
        save_csv(events, events_path)
        logger.info(f"Generated event log with {len(events)} events: {events_path}")

    if format in ['html', 'both']:
        html_path = os.path.join(out_dir, "summary.html")
        _generate_html_report(summary, html_path)
        logger.info(f"Generated HTML report: {html_path}")

    return json_path


def _format(value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, float):
        return f"{value:.4g}"
    return str(value)


def _generate_html_report(summary: Dict[str, Any], output_path: str):
    """Generate HTML report."""
    html = f"""
<!DOCTYPE html>
<html>
<head>
    <title>awtsim Simulation Report</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; }}
        h1 {{ color: #333; }}
        h2 {{ color: #666; margin-top: 30px; }}
        table {{ border-collapse: collapse; width: 100%; margin-top: 20px; }}
        th, td {{ border: 1px solid #ddd; padding: 12px; text-align: left; }}
        th {{ background-color: #f2f2f2; }}
        .missed {{ color: #cc3300; }}
    </style>
</head>
<body>
    <h1>awtsim Simulation Report</h1>

    <h2>Replicates</h2>
    <p>Completed: {summary.get('completed', 0)} / {summary.get('replicates', 0)}
       (failed: {summary.get('failed', 0)}, skipped: {summary.get('skipped', 0)})</p>

    <h2>Metrics</h2>
    <table>
        <tr>
            <th>Metric</th>
            <th>Target</th>
            <th>Mean</th>
            <th>Std</th>
            <th>95% CI</th>
            <th>On target</th>
        </tr>
"""

    for label, entry in summary.get('metrics', {}).items():
        css = '' if entry['on_target_fraction'] == 1.0 else ' class="missed"'
        html += f"""
        <tr{css}>
            <td>{label}</td>
            <td>{entry['condition']} {_format(entry['target'])}</td>
            <td>{_format(entry['mean'])}</td>
            <td>{_format(entry['std'])}</td>
            <td>{_format(entry['ci_low'])} .. {_format(entry['ci_high'])}</td>
            <td>{entry['on_target_fraction']:.0%}</td>
        </tr>
"""

    html += """
    </table>
</body>
</html>
"""

    with open(output_path, 'w') as f:
        f.write(html)
