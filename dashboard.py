# dashboard.py
from html import escape

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse

from models import isoformat

router = APIRouter()

# ---------- Shared UI ----------
BASE_STYLE = """
  body { font-family: Arial, sans-serif; margin: 0; background: #f9f9f9; color: #333; }
  h1 { background: #2196F3; color: white; padding: 15px; margin: 0; }
  h2 { margin-top: 30px; color: #2196F3; }
  .container { padding: 20px; }
  .navbar { background: #1976D2; padding: 10px 20px; display: flex; gap: 20px; }
  .navbar a { color: white; text-decoration: none; font-weight: bold; }
  table { border-collapse: collapse; width: 100%; margin-top: 10px; background: white; }
  th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
  th { background-color: #2196F3; color: white; }
  tr:nth-child(even) { background-color: #f2f2f2; }
  a { color: #1976D2; }
  .cards { display: grid; grid-template-columns: repeat(auto-fit,minmax(220px,1fr)); gap: 16px; margin-top: 20px; }
  .card { background: white; border: 1px solid #ddd; border-radius: 6px; padding: 12px; }
  .muted { color: #555; }
"""


def page(title: str, body_html: str) -> str:
    return f"""
    <html>
    <head>
      <title>{title}</title>
      <style>{BASE_STYLE}</style>
    </head>
    <body>
      <h1>{title}</h1>
      <div class="navbar">
        <a href="/">Jobs</a>
        <a href="/stats">Stats (JSON)</a>
        <a href="/health">Health</a>
      </div>
      <div class="container">
        {body_html}
      </div>
    </body>
    </html>
    """


def _fmt_duration(ms):
    return f"{ms / 1000:.3f}s" if ms is not None else "-"


# ---------- Home ----------
@router.get("/", response_class=HTMLResponse)
def home(request: Request):
    manager = request.app.state.manager
    jobs = sorted(manager.get_all_jobs(), key=lambda j: j.start_time, reverse=True)[:50]
    stats = manager.get_job_stats()

    cards = f"""
      <div class="cards">
        <div class="card"><h3>Total jobs</h3><p>{stats.total_jobs}</p></div>
        <div class="card"><h3>Success rate</h3><p>{stats.overall_success_rate:.0%}</p></div>
        <div class="card"><h3>Platform</h3><p>{escape(manager.platform)}</p></div>
      </div>
    """

    table_html = """
    <h2>Recent jobs</h2>
    <table>
      <tr><th>ID</th><th>Name</th><th>Arguments</th><th>Status</th><th>Retry</th><th>Started</th><th>Duration</th></tr>
    """
    for j in jobs:
        retry = f"{j.retry_count}/{j.max_retries}"
        if j.original_job_id:
            retry += f" (of <a href='/job/{j.original_job_id}'>{j.original_job_id[:8]}</a>)"
        table_html += (
            f"<tr><td><a href='/job/{j.id}'>{j.id[:8]}</a></td><td>{escape(j.name)}</td>"
            f"<td>{escape(' '.join(j.arguments)) or '-'}</td><td>{j.status}</td><td>{retry}</td>"
            f"<td>{isoformat(j.start_time)}</td><td>{_fmt_duration(j.duration)}</td></tr>"
        )
    table_html += "</table>"
    if not jobs:
        table_html += "<p class='muted'>No jobs yet. POST /jobs to start one.</p>"

    patterns_html = """
    <h2>Patterns</h2>
    <table>
      <tr><th>Pattern</th><th>Matches</th><th>Success rate</th><th>vs. average</th></tr>
    """
    for p in stats.patterns:
        patterns_html += (
            f"<tr><td>{escape(p.pattern)}</td><td>{p.match_count}</td>"
            f"<td>{p.success_rate:.2f}</td><td>{p.difference_from_average}</td></tr>"
        )
    patterns_html += "</table>"

    return page("Simulator Jobs", cards + table_html + patterns_html)


# ---------- Job detail ----------
@router.get("/job/{job_id}", response_class=HTMLResponse)
def job_detail(job_id: str, request: Request):
    job = request.app.state.manager.get_job(job_id)
    if job is None:
        return HTMLResponse(page("Job not found", f"<p>Job {escape(job_id)} not found.</p>"), status_code=404)

    exit_code = job.exit_code if job.exit_code is not None else "-"
    original = f"<a href='/job/{job.original_job_id}'>{job.original_job_id}</a>" if job.original_job_id else "-"

    body = f"""
      <h2>Job {job.id}</h2>
      <div class="cards">
        <div class="card"><b>Name</b><p>{escape(job.name)}</p></div>
        <div class="card"><b>Status</b><p>{job.status}</p></div>
        <div class="card"><b>Retry</b><p>{job.retry_count}/{job.max_retries}</p></div>
        <div class="card"><b>Duration</b><p>{_fmt_duration(job.duration)}</p></div>
        <div class="card"><b>Exit code</b><p>{exit_code}</p></div>
      </div>

      <h3>Arguments</h3>
      <p class="muted">{escape(' '.join(job.arguments)) or '(none)'}</p>

      <h3>Timestamps</h3>
      <table>
        <tr><th>Started</th><td>{isoformat(job.start_time)}</td></tr>
        <tr><th>Finished</th><td>{isoformat(job.end_time) or '-'}</td></tr>
        <tr><th>Retry of</th><td>{original}</td></tr>
      </table>

      <h3>Error</h3>
      <pre>{escape(job.error or '-')}</pre>

      <h3>stdout</h3>
      <pre>{escape(job.stdout or '(no output)')}</pre>

      <h3>stderr</h3>
      <pre>{escape(job.stderr or '(no output)')}</pre>

      <p><a href="/job/{job.id}/download">Download output log</a></p>
    """
    return page(f"Job {job.id[:8]} Detail", body)


# ---------- Download output ----------
@router.get("/job/{job_id}/download", response_class=PlainTextResponse)
def download_output(job_id: str, request: Request):
    job = request.app.state.manager.get_job(job_id)
    if job is None or not (job.stdout or job.stderr):
        return PlainTextResponse("(no output)", media_type="text/plain")
    return PlainTextResponse((job.stdout or "") + (job.stderr or ""), media_type="text/plain")
