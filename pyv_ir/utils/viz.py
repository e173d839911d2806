import plotly.express as px
import pandas as pd

EXEC_TIME_COLUMN = "exec_time_mcs"


def export_layer_chart(layers, path: str):
    """Bar chart of the IR: per-layer execution time for execution graphs, layer count per type otherwise."""
    if not layers:
        with open(path, "w") as f:
            f.write("<h1>IR Layers</h1><p>No data to display.</p>")
        return

    df = pd.DataFrame(layers)
    timed = None
    if EXEC_TIME_COLUMN in df.columns:
        # Layers that were not executed carry no usable time
        df[EXEC_TIME_COLUMN] = pd.to_numeric(df[EXEC_TIME_COLUMN], errors='coerce')
        timed = df.dropna(subset=[EXEC_TIME_COLUMN])

    if timed is not None and not timed.empty:
        fig = px.bar(
            timed,
            x="name",
            y=EXEC_TIME_COLUMN,
            color="type",
            hover_data=[c for c in ("id", "type") if c in timed.columns],
            title="IR Per-layer Execution Time",
            labels={"name": "Layer", EXEC_TIME_COLUMN: "Time (us)", "type": "Layer type"},
        )
    else:
        counts = df.groupby("type").size().reset_index(name="count")
        fig = px.bar(
            counts,
            x="type",
            y="count",
            color="type",
            title="IR Layer Types",
            labels={"type": "Layer type", "count": "Layers"},
        )

    fig.update_layout(
        font=dict(family="Courier New, monospace", size=12),
        legend_title="Layer type",
    )
    fig.write_html(path, include_plotlyjs="cdn", full_html=True)


def export_layer_table_ascii(layers):
    if not layers:
        return "No layers."

    show_time = any(layer.get(EXEC_TIME_COLUMN) is not None for layer in layers)
    name_width = max(8, max(len(layer["name"]) for layer in layers))
    type_width = max(8, max(len(layer["type"]) for layer in layers))

    header = f"{'id':>5} | {'name':<{name_width}} | {'type':<{type_width}} | {'version':<12}"
    if show_time:
        header += " | time (us)"
    chart = "IR Layers\n"
    chart += header + "\n"
    chart += "-" * len(header) + "\n"
    for layer in layers:
        line = (f"{layer['id']:>5} | {layer['name']:<{name_width}} | "
                f"{layer['type']:<{type_width}} | {layer.get('version') or '-':<12}")
        if show_time:
            t = layer.get(EXEC_TIME_COLUMN)
            line += " | " + ("-" if t is None else f"{t:.2f}")
        chart += line + "\n"
    return chart
