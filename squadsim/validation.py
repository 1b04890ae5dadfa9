"""
Validation Module

Metrics and checks for simulated trajectories.
"""

import numpy as np
import pandas as pd
from typing import Dict

from .config import ShapeParameters
from .network import NetworkModel
from .trajectory import Trajectory


class SimulationValidator:
    """Validate simulation quality against the network that produced it."""

    def __init__(self, network: NetworkModel, params: ShapeParameters):
        """
        Parameters
        ----------
        network : NetworkModel
            Network the trajectories were simulated from
        params : ShapeParameters
            Shape parameters of the run
        """
        self.network = network
        self.params = params

    def compute_trajectory_smoothness(self, trajectory: Trajectory) -> float:
        """
        Compute trajectory smoothness (lower = smoother).

        Mean squared second difference of the states. Perturbation pulses
        show up as spikes.
        """
        states = trajectory.states
        if states.shape[0] < 3:
            return 0.0
        a = np.diff(states, n=2, axis=0)
        return float(np.mean(np.linalg.norm(a, axis=1) ** 2))

    def compute_residual_speed(self, trajectory: Trajectory) -> float:
        """Norm of the derivative at the last sample; zero at a fixed point."""
        x_final = trajectory.states[-1]
        v = self.network.vector_field(float(trajectory.times[-1]), x_final, self.params)
        return float(np.linalg.norm(v))

    def is_steady_state(self, trajectory: Trajectory,
                        window: float = 1.0,
                        tol: float = 1e-3) -> bool:
        """
        Check whether the trajectory has settled.

        Parameters
        ----------
        trajectory : Trajectory
            Simulated trajectory
        window : float
            Length of the final time window inspected
        tol : float
            Largest allowed change within the window and derivative norm

        Returns
        -------
        steady : bool
            True when states vary less than ``tol`` over the final window
            and the derivative at the end is below ``tol``
        """
        mask = trajectory.times >= trajectory.times[-1] - window
        tail = trajectory.states[mask]
        spread = float(np.max(np.ptp(tail, axis=0))) if tail.shape[0] > 1 else 0.0
        return spread < tol and self.compute_residual_speed(trajectory) < tol

    def compute_perturbation_effect_size(self,
                                         wt_trajectory: Trajectory,
                                         pert_trajectory: Trajectory) -> Dict:
        """
        Compute effect size metrics for perturbation.

        Parameters
        ----------
        wt_trajectory : Trajectory
            Reference trajectory
        pert_trajectory : Trajectory
            Perturbed trajectory on the same grid

        Returns
        -------
        metrics : dict
            Dictionary with effect size metrics
        """
        if wt_trajectory.states.shape != pert_trajectory.states.shape:
            raise ValueError("Trajectories must share the time grid and nodes")
        distances = np.linalg.norm(pert_trajectory.states - wt_trajectory.states, axis=1)
        n = len(distances)

        metrics = {
            'mean_effect_size': float(np.mean(distances)),
            'max_effect_size': float(np.max(distances)),
            'min_effect_size': float(np.min(distances)),
            'effect_size_std': float(np.std(distances)),
            'early_effect': float(np.mean(distances[:max(n // 3, 1)])),  # First third
            'late_effect': float(np.mean(distances[2 * n // 3:])),  # Last third
            'final_effect': float(distances[-1]),
        }
        onset = np.flatnonzero(distances > 1e-6)
        metrics['divergence_time'] = float(wt_trajectory.times[onset[0]]) if onset.size else float('nan')

        return metrics

    def compute_activation_validity(self, trajectory: Trajectory) -> Dict:
        """
        Check that activations stay finite and within [0, 1].

        Returns
        -------
        metrics : dict
            Fractions of out-of-range and non-finite values, and a validity
            score (0-1, higher = better)
        """
        states = trajectory.states
        metrics = {}

        n_nan = np.sum(~np.isfinite(states))
        metrics['nan_fraction'] = float(n_nan / states.size)

        # small solver overshoot is tolerated
        n_out_of_range = np.sum((states < -1e-6) | (states > 1 + 1e-6))
        metrics['out_of_range_fraction'] = float(n_out_of_range / states.size)

        metrics['validity_score'] = 1.0 - (metrics['nan_fraction'] +
                                           metrics['out_of_range_fraction']) / 2
        return metrics


class MetricsReporter:
    """Generate validation reports."""

    def __init__(self, validator: SimulationValidator, verbose: bool = False):
        self.validator = validator
        self.verbose = verbose

    def generate_report(self,
                        trajectory: Trajectory,
                        reference: Trajectory = None) -> pd.DataFrame:
        """
        Generate validation report.

        Parameters
        ----------
        trajectory : Trajectory
            Trajectory to validate
        reference : Trajectory, optional
            Unperturbed trajectory for effect-size metrics

        Returns
        -------
        report : pd.DataFrame
            Metrics report with a single 'Value' column
        """
        if self.verbose:
            print("Computing validation metrics...")

        metrics = {}

        smoothness = self.validator.compute_trajectory_smoothness(trajectory)
        metrics['Trajectory_Smoothness'] = smoothness

        metrics['Residual_Speed'] = self.validator.compute_residual_speed(trajectory)
        metrics['Steady_State'] = float(self.validator.is_steady_state(trajectory))

        metrics.update(self.validator.compute_activation_validity(trajectory))

        if reference is not None:
            metrics.update(self.validator.compute_perturbation_effect_size(reference, trajectory))

        if self.verbose:
            for name, value in metrics.items():
                print(f"  {name}: {value:.6f}")

        report = pd.DataFrame([metrics]).T
        report.columns = ['Value']

        return report
