from __future__ import annotations

from html import escape


def render_homepage(*, app_name: str, api_prefix: str) -> str:
    template = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>News Report Console</title>
  <link rel="preconnect" href="https://fonts.googleapis.com">
  <link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>
  <link
    href="https://fonts.googleapis.com/css2?family=Space+Grotesk:wght@400;500;700&display=swap"
    rel="stylesheet"
  >
  <style>
    :root {
      --bg: #f3efe6;
      --panel: #fffaf0;
      --ink: #112433;
      --muted: #5c6b74;
      --accent: #0f8b8d;
      --accent-strong: #136f63;
      --line: #d7d1c3;
      --warn: #b00020;
    }
    * { box-sizing: border-box; }
    body {
      margin: 0;
      min-height: 100vh;
      font-family: "Space Grotesk", sans-serif;
      color: var(--ink);
      background:
        radial-gradient(circle at 10% 10%, #b6e3df 0%, transparent 45%),
        radial-gradient(circle at 90% 85%, #ffd3a8 0%, transparent 42%),
        var(--bg);
    }
    .wrap {
      max-width: 960px;
      margin: 24px auto;
      padding: 0 16px 24px;
      display: grid;
      gap: 16px;
    }
    .hero, .card {
      background: var(--panel);
      border: 1px solid var(--line);
      border-radius: 16px;
      box-shadow: 0 8px 22px rgba(17, 36, 51, 0.08);
      padding: 20px;
    }
    .controls { display: flex; gap: 12px; align-items: center; flex-wrap: wrap; }
    select, button {
      font: inherit;
      padding: 8px 12px;
      border-radius: 10px;
      border: 1px solid var(--line);
    }
    button {
      background: var(--accent);
      color: white;
      border-color: var(--accent-strong);
      cursor: pointer;
    }
    button:disabled { background: var(--muted); cursor: not-allowed; }
    .status { color: var(--muted); }
    .error { color: var(--warn); }
    .article { border-top: 1px solid var(--line); padding: 12px 0; }
    .article:first-child { border-top: none; }
    .meta { color: var(--muted); font-size: 0.9em; }
  </style>
</head>
<body>
  <div class="wrap">
    <section class="hero">
      <h1>__APP_NAME__</h1>
      <p>Request a fresh news report and watch the task until the agent calls back.</p>
      <div class="controls">
        <label for="period">Period</label>
        <select id="period">
          <option value="24h">Last 24 hours</option>
          <option value="7d">Last 7 days</option>
          <option value="30d">Last 30 days</option>
        </select>
        <button id="request">Generate report</button>
        <span id="status" class="status"></span>
      </div>
      <p id="error" class="error"></p>
    </section>
    <section class="card">
      <h2>Latest report</h2>
      <p id="generated" class="meta"></p>
      <div id="articles"></div>
    </section>
  </div>
  <script>
    const API = "__API_PREFIX__";
    const button = document.getElementById("request");
    const statusEl = document.getElementById("status");
    const errorEl = document.getElementById("error");
    let pollTimer = null;

    function safeUrl(raw) {
      try {
        const parsed = new URL(raw, window.location.href);
        return parsed.protocol === "http:" || parsed.protocol === "https:" ? parsed.href : null;
      } catch (err) {
        return null;
      }
    }

    function renderReport(report) {
      document.getElementById("generated").textContent =
        "Generated at " + report.generatedAt + " (" + report.reportId + ")";
      const container = document.getElementById("articles");
      container.innerHTML = "";
      for (const article of report.articles) {
        const item = document.createElement("div");
        item.className = "article";
        const link = document.createElement("a");
        const href = safeUrl(article.url);
        if (href) {
          link.href = href;
          link.rel = "noopener noreferrer";
        }
        link.textContent = article.title;
        link.target = "_blank";
        const meta = document.createElement("div");
        meta.className = "meta";
        meta.textContent = article.source_name + " | " + article.published_at;
        item.appendChild(link);
        item.appendChild(meta);
        if (article.summary) {
          const summary = document.createElement("p");
          summary.textContent = article.summary;
          item.appendChild(summary);
        }
        container.appendChild(item);
      }
    }

    async function loadLatest() {
      const response = await fetch(API + "/reports/latest");
      if (response.status === 404) {
        document.getElementById("generated").textContent = "No reports yet.";
        return;
      }
      if (!response.ok) {
        errorEl.textContent = "Could not load the latest report.";
        return;
      }
      renderReport(await response.json());
    }

    function stopPolling() {
      if (pollTimer) clearInterval(pollTimer);
      pollTimer = null;
      button.disabled = false;
    }

    async function poll(taskId) {
      const response = await fetch(API + "/tasks/" + taskId + "/status");
      if (!response.ok) {
        errorEl.textContent = "Could not read task status.";
        stopPolling();
        return;
      }
      const body = await response.json();
      statusEl.textContent = "Task " + taskId + ": " + body.status;
      if (body.status === "COMPLETED") {
        stopPolling();
        await loadLatest();
      } else if (body.status === "FAILED") {
        errorEl.textContent = body.errorMessage || "Report generation failed.";
        stopPolling();
      }
    }

    button.addEventListener("click", async () => {
      errorEl.textContent = "";
      button.disabled = true;
      const period = document.getElementById("period").value;
      const response = await fetch(API + "/reports", {
        method: "POST",
        headers: {"Content-Type": "application/json"},
        body: JSON.stringify({period}),
      });
      const body = await response.json();
      if (response.status !== 202) {
        errorEl.textContent = body.error || "Report request failed.";
        button.disabled = false;
        return;
      }
      statusEl.textContent = "Task " + body.taskId + ": " + body.status;
      pollTimer = setInterval(() => poll(body.taskId), 3000);
    });

    loadLatest();
  </script>
</body>
</html>
"""
    return template.replace("__APP_NAME__", escape(app_name)).replace(
        "__API_PREFIX__", escape(api_prefix.rstrip("/"))
    )
