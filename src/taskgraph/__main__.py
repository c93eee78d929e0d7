from taskgraph.main import run

if __name__ == "__main__":  # pragma: no cover
    run(prog_name="taskgraph")
