# qcsim/__main__.py
from __future__ import annotations

import numpy as np
import typer
from rich.console import Console
from rich.table import Table

from qcsim.algorithms import STATEVECTOR_BACKEND, build_grover, build_qft, run_grover
from qcsim.errors import QuantumError
from qcsim.logging_config import setup_logging
from qcsim.noise import NoiseModel
from qcsim.qiskit_backend import to_qasm
from qcsim.settings import get_settings
from qcsim.system import QuantumSystem

setup_logging()

app = typer.Typer(help="Quantum circuit simulator CLI")
console = Console()


def _print_counts(counts: np.ndarray, n_bits: int, title: str, top: int = 16) -> None:
    total = int(counts.sum())
    order = np.argsort(counts)[::-1]
    console.print(f"[bold magenta]{title}[/bold magenta]")
    table = Table(header_style="bold cyan")
    table.add_column("outcome", justify="center")
    table.add_column("count", justify="right")
    table.add_column("p", justify="right")
    for idx in order[:top]:
        c = int(counts[idx])
        if c == 0:
            break
        table.add_row(format(int(idx), f"0{n_bits}b"), str(c), f"{c / total:.4f}")
    console.print(table)


def _fail(e: QuantumError) -> None:
    console.print(f"[bold red]{type(e).__name__}:[/bold red] {e}")
    raise typer.Exit(code=1)


@app.command()
def backends():
    """List the registered backends."""
    with QuantumSystem(workers=1) as qs:
        table = Table(title="Backends", header_style="bold cyan")
        for col in ("id", "name", "kind", "qubits", "shots", "custom", "noise", "QEC", "gate F", "readout F"):
            table.add_column(col)
        for b in qs.backends():
            caps = b.capabilities
            table.add_row(
                str(b.id),
                b.name,
                b.kind.value,
                str(b.max_qubits),
                str(b.max_shots),
                "✓" if caps.custom_gates else "",
                "✓" if caps.noise_model else "",
                "✓" if caps.error_correction else "",
                f"{b.gate_fidelity:.3f}",
                f"{b.readout_fidelity:.3f}",
            )
        console.print(table)


@app.command()
def grover(
    size: int = typer.Option(4, help="Search space size N"),
    target: int = typer.Option(3, help="Marked item"),
    shots: int = typer.Option(1000, help="Number of shots"),
    seed: int | None = typer.Option(None, help="PRNG seed"),
):
    """Run Grover search and print the histogram."""
    with QuantumSystem() as qs:
        try:
            run = run_grover(qs, size, target, shots=shots, seed=seed)
            qs.wait(run.job_id, timeout=get_settings().JOB_TIMEOUT_S)
            counts = qs.get_job_results(run.job_id)
        except QuantumError as e:
            _fail(e)
        n = qs.circuit(run.circuit_id).qubit_count
        _print_counts(counts, n, f"Grover N={size} target={target} ({run.iterations} iterations)")


@app.command()
def qft(
    qubits: int = typer.Option(3, help="Number of qubits"),
    basis: int = typer.Option(1, help="Input basis state |x>"),
):
    """Print the amplitudes of QFT|x>."""
    with QuantumSystem() as qs:
        try:
            circuit_id = build_qft(qs, qubits, basis)
            backend_id = qs.find_backend(STATEVECTOR_BACKEND).id
            job_id = qs.submit_job(circuit_id, backend_id, 1)
            qs.wait(job_id)
            state = qs.get_final_state(job_id)
        except QuantumError as e:
            _fail(e)

        table = Table(title=f"QFT |{basis}> on {qubits} qubits", header_style="bold cyan")
        for col in ("k", "amplitude", "|a|^2"):
            table.add_column(col, justify="right")
        for k, a in enumerate(state.amplitudes):
            table.add_row(str(k), f"{a.real:+.4f}{a.imag:+.4f}j", f"{abs(a) ** 2:.4f}")
        console.print(table)


@app.command()
def bell(
    shots: int = typer.Option(1000, help="Number of shots"),
    seed: int | None = typer.Option(None, help="PRNG seed"),
    noise: float = typer.Option(0.0, help="Depolarization rate per gate"),
    backend: str = typer.Option(STATEVECTOR_BACKEND, help="Backend name"),
):
    """Prepare (|00> + |11>)/sqrt(2) and sample it."""
    model = NoiseModel(name="CLI", depolarization_rate=noise, enabled=noise > 0)
    with QuantumSystem(model) as qs:
        try:
            c = qs.create_circuit("Bell", 2, 2)
            qs.add_gate(c, "H", [0])
            qs.add_gate(c, "CNOT", [0, 1])
            qs.add_measurement(c, 0, 0)
            qs.add_measurement(c, 1, 1)
            job_id = qs.submit_job(c, qs.find_backend(backend).id, shots, seed=seed)
            status = qs.wait(job_id)
            counts = qs.get_job_results(job_id)
        except QuantumError as e:
            _fail(e)
        _print_counts(counts, 2, f"Bell pair on {backend} ({status.elapsed:.3f}s)")


@app.command()
def qasm(
    algorithm: str = typer.Argument(..., help="grover or qft"),
    size: int = typer.Option(4, help="Grover search space size"),
    target: int = typer.Option(3, help="Grover marked item"),
    qubits: int = typer.Option(3, help="QFT qubit count"),
    basis: int = typer.Option(0, help="QFT input basis state"),
):
    """Print the OpenQASM 2 export of a built circuit."""
    chosen = algorithm.strip().lower()
    if chosen not in {"grover", "qft"}:
        raise typer.BadParameter("Invalid algorithm, choose 'grover' or 'qft'")
    with QuantumSystem(workers=1) as qs:
        try:
            if chosen == "grover":
                circuit_id = build_grover(qs, size, target)
            else:
                circuit_id = build_qft(qs, qubits, basis)
        except QuantumError as e:
            _fail(e)
        typer.echo(to_qasm(qs.circuit(circuit_id)))


if __name__ == "__main__":
    app()
