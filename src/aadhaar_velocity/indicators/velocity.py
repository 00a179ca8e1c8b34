"""First-derivative velocity of enrolment and biometric counts.

Velocity is the change between consecutive observations (one day apart in
the daily dataset). Two rules flag notable days:

- a biometric (5-17) velocity above the spike threshold marks the school
  admission effect;
- an enrolment (0-5) velocity close to zero marks an exclusion zone.
"""

from __future__ import annotations

from aadhaar_velocity.types import VelocityPoint, VelocityResult

SPIKE_THRESHOLD = 20.0
EXCLUSION_THRESHOLD = 2.0


def calculate_velocity(
    points: list[VelocityPoint],
    spike_threshold: float = SPIKE_THRESHOLD,
    exclusion_threshold: float = EXCLUSION_THRESHOLD,
) -> list[VelocityResult]:
    """Compute day-over-day velocities with rule flags.

    :param points: Observations ordered by date.
    :param spike_threshold: Biometric velocity above which a day is a spike.
    :param exclusion_threshold: Enrolment velocity magnitude below which a day
        is an exclusion zone.
    :returns: One result per observation after the first.
    """
    results: list[VelocityResult] = []
    for previous, current in zip(points, points[1:]):
        velocity_enrolment = current.enrolment_0_5 - previous.enrolment_0_5
        velocity_biometric = current.biometric_5_17 - previous.biometric_5_17
        results.append(
            VelocityResult(
                date=current.date,
                velocity_enrolment=velocity_enrolment,
                velocity_biometric=velocity_biometric,
                is_school_admission_spike=velocity_biometric > spike_threshold,
                is_exclusion_zone=abs(velocity_enrolment) < exclusion_threshold,
            )
        )
    return results
