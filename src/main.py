from logging_config import setup_logging
from nonlinear_fem_solver import PoissonNLFEMSolver, get_default_solver_config
from common_functions import save_solution
from plotting_utils import plot_nodal_solution, plot_residual_history


def main(config=None):
    print("2D Nonlinear Poisson Equation Solver")
    print("=" * 50)
    print("Solving: -∇²u + f(u) = s in Ω")
    print("with u = g on ∂Ω")

    setup_logging()

    config = config if config is not None else get_default_solver_config()
    functions = config['functions']
    print(f"source={functions['source']}, boundary={functions['boundary']}, "
          f"nonlinear={functions['nonlinear']}, method={config['solver']['method']}")

    # Build mesh and solve
    print("\n1. Building mesh...")
    solver = PoissonNLFEMSolver.from_config(config)

    print("\n2. Solving nonlinear system...")
    result = solver.solve()

    print(f"\nStatus: {result.status.value}")
    print(f"Iterations: {result.iterations}")
    print(f"Residual norm: {result.residual_norm:.6e} (tolerance {result.tolerance:.6e})")
    if any(result.inner_failures):
        print(f"Scalar Newton searches over budget: {sum(result.inner_failures)}")

    output = config.get('output', {})
    if output.get('save_filename'):
        save_solution(result.u, solver.mesh.node, solver.mesh.elem, output['save_filename'])

    if output.get('plot', True):
        print("\n3. Plotting solution...")
        plot_nodal_solution(solver.mesh.node, solver.mesh.elem, result.u)
        plot_residual_history(result.residual_history, result.tolerance)

    return result


if __name__ == "__main__":
    main()
