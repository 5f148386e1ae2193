"""
HTML dashboard report rendered with jinja2.

Templates live in a DictLoader so the package ships no template files;
autoescaping is on for every template.
"""

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from perfbench.analysis.models import PerformanceReport


DASHBOARD_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Performance Benchmark Report - {{ report.session_id }}</title>
  <style>
    body { font-family: -apple-system, Segoe UI, Roboto, sans-serif; margin: 24px; color: #222; }
    .header { border-bottom: 2px solid #444; margin-bottom: 16px; }
    .stats { display: flex; flex-wrap: wrap; gap: 12px; margin-bottom: 24px; }
    .stat-card { background: #f5f7fa; border-radius: 6px; padding: 12px 16px; min-width: 140px; }
    .stat-card .label { font-size: 12px; color: #666; text-transform: uppercase; }
    .stat-card .value { font-size: 20px; font-weight: 600; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 24px; }
    th, td { border: 1px solid #ddd; padding: 6px 10px; text-align: left; }
    th { background: #eef1f5; }
    .severity-CRITICAL, .status-FAIL { color: #b00020; font-weight: 600; }
    .severity-HIGH { color: #d35400; }
    .severity-MEDIUM, .status-WARNING { color: #b7950b; }
    .status-PASS { color: #1e8449; }
  </style>
</head>
<body>
  <div class="header">
    <h1>Performance Benchmark Report</h1>
    <p>Session <strong>{{ report.session_id }}</strong> generated {{ report.timestamp.isoformat() }}</p>
    <p>Total tests: {{ report.total_tests }}
       (passed {{ summary.passed_tests }}, warning {{ summary.warning_tests }}, failed {{ summary.failed_tests }})</p>
  </div>

  <div class="stats">
    {% for label, value in headline %}
    <div class="stat-card"><div class="label">{{ label }}</div><div class="value">{{ value.format() }}</div></div>
    {% endfor %}
  </div>

  <h2>Services</h2>
  {% for name, stats in report.service_stats.items() %}
  <h3>{{ name }}</h3>
  <p>Requests {{ stats.total_requests }}, errors {{ stats.total_errors }},
     average RPS {{ "%.2f"|format(stats.average_rps) }}, P95 {{ "%.2f"|format(stats.p95_latency_ms) }}ms,
     violations {{ stats.violation_count }}</p>
  <table>
    <tr><th>Endpoint</th><th>Method</th><th>RPS</th><th>P50 (ms)</th><th>P95 (ms)</th><th>P99 (ms)</th>
        <th>Error Rate</th><th>CPU %</th><th>Memory MB</th></tr>
    {% for ep in stats.endpoint_stats.values() %}
    <tr>
      <td>{{ ep.endpoint }}</td><td>{{ ep.method }}</td><td>{{ "%.2f"|format(ep.rps) }}</td>
      <td>{{ "%.2f"|format(ep.median_latency_ms) }}</td><td>{{ "%.2f"|format(ep.p95_latency_ms) }}</td>
      <td>{{ "%.2f"|format(ep.p99_latency_ms) }}</td><td>{{ "%.2f"|format(ep.error_rate) }}%</td>
      <td>{{ "%.2f"|format(ep.average_cpu_percent) }}</td><td>{{ "%.2f"|format(ep.average_memory_mb) }}</td>
    </tr>
    {% endfor %}
  </table>
  {% else %}
  <p>No benchmark results were recorded in this session.</p>
  {% endfor %}

  {% if report.results %}
  <h2>Results</h2>
  <table>
    <tr><th>Test</th><th>Service</th><th>Endpoint</th><th>Concurrency</th><th>Status</th><th>Violations</th></tr>
    {% for result in report.results %}
    <tr>
      <td>{{ result.test_name }}</td><td>{{ result.service }}</td><td>{{ result.endpoint }}</td>
      <td>{{ result.concurrency }}</td>
      <td class="status-{{ result.status.value }}">{{ result.status.value }}</td>
      <td>{% for violation in result.violations %}<div class="severity-{{ violation.severity.value }}">{{ violation.message }}</div>{% endfor %}</td>
    </tr>
    {% endfor %}
  </table>
  {% endif %}

  {% if report.regressions %}
  <h2>Regressions</h2>
  <table>
    <tr><th>Severity</th><th>Service</th><th>Endpoint</th><th>Metric</th><th>Current</th><th>Baseline</th><th>Change</th></tr>
    {% for regression in report.regressions %}
    <tr>
      <td class="severity-{{ regression.severity.value }}">{{ regression.severity.value }}</td>
      <td>{{ regression.service }}</td><td>{{ regression.endpoint }}</td><td>{{ regression.metric }}</td>
      <td>{{ "%.2f"|format(regression.current) }}</td><td>{{ "%.2f"|format(regression.baseline) }}</td>
      <td>{{ "%+.1f"|format(regression.regression_pct) }}%</td>
    </tr>
    {% endfor %}
  </table>
  {% endif %}

  <h2>Recommendations</h2>
  <ul>
    {% for recommendation in report.recommendations %}
    <li>{{ recommendation }}</li>
    {% endfor %}
  </ul>
</body>
</html>
"""

_environment = Environment(
    loader=DictLoader({'dashboard.html': DASHBOARD_TEMPLATE}),
    autoescape=select_autoescape(['html', 'xml']),
    undefined=StrictUndefined,
)


def render(report: PerformanceReport) -> bytes:
    template = _environment.get_template('dashboard.html')
    html = template.render(
        report=report,
        summary=report.summary,
        headline=report.summary.headline(),
    )
    return html.encode('utf-8')
