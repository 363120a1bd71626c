"""Quaternion algebra for body-to-reference orientations.

All quaternions are (w, x, y, z), scalar first, Hamilton convention. A
unit quaternion q maps a body-frame vector v to the reference frame as
q * (0, v) * q^-1.
"""

import math

import numpy as np
from numpy.typing import NDArray

from .types import Quaternion, EulerAngles, Vector3


class QuaternionOps:
    """Static methods for quaternion operations."""

    @staticmethod
    def multiply(q1: Quaternion, q2: Quaternion) -> Quaternion:
        """Hamilton product q1 * q2."""
        return Quaternion(
            w=q1.w * q2.w - q1.x * q2.x - q1.y * q2.y - q1.z * q2.z,
            x=q1.w * q2.x + q1.x * q2.w + q1.y * q2.z - q1.z * q2.y,
            y=q1.w * q2.y - q1.x * q2.z + q1.y * q2.w + q1.z * q2.x,
            z=q1.w * q2.z + q1.x * q2.y - q1.y * q2.x + q1.z * q2.w,
        )

    @staticmethod
    def conjugate(q: Quaternion) -> Quaternion:
        return Quaternion(w=q.w, x=-q.x, y=-q.y, z=-q.z)

    @staticmethod
    def rotate(q: Quaternion, v: Vector3) -> Vector3:
        """Rotate a body-frame vector into the reference frame.

        Args:
            q: Unit orientation quaternion.
            v: Vector in the body frame.

        Returns:
            The same vector expressed in the reference frame.
        """
        qv = QuaternionOps.multiply(q, Quaternion.from_vector(v))
        return QuaternionOps.multiply(qv, QuaternionOps.conjugate(q)).vector

    @staticmethod
    def inverse_rotate(q: Quaternion, v: Vector3) -> Vector3:
        """Rotate a reference-frame vector into the body frame."""
        return QuaternionOps.rotate(QuaternionOps.conjugate(q), v)

    @staticmethod
    def to_rotation_matrix(q: Quaternion) -> NDArray[np.float64]:
        """3x3 body-to-reference rotation matrix of a unit quaternion."""
        w, x, y, z = q.w, q.x, q.y, q.z
        return np.array([
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ], dtype=np.float64)

    @staticmethod
    def from_rotation_matrix(R: NDArray[np.float64]) -> Quaternion:
        """Convert a body-to-reference rotation matrix to a unit quaternion.

        Shepperd's method: the largest of |w|, |x|, |y|, |z| is taken from
        the diagonal, the other three from the off-diagonal terms divided
        by it.

        Args:
            R: 3x3 rotation matrix.

        Returns:
            Unit quaternion representing the same rotation.
        """
        R = np.asarray(R, dtype=np.float64)
        pivot = int(np.argmax((np.trace(R), R[0, 0], R[1, 1], R[2, 2])))

        if pivot == 0:
            w = 0.5 * math.sqrt(1.0 + R[0, 0] + R[1, 1] + R[2, 2])
            s = 0.25 / w
            x = (R[2, 1] - R[1, 2]) * s
            y = (R[0, 2] - R[2, 0]) * s
            z = (R[1, 0] - R[0, 1]) * s
        elif pivot == 1:
            x = 0.5 * math.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
            s = 0.25 / x
            w = (R[2, 1] - R[1, 2]) * s
            y = (R[0, 1] + R[1, 0]) * s
            z = (R[0, 2] + R[2, 0]) * s
        elif pivot == 2:
            y = 0.5 * math.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
            s = 0.25 / y
            w = (R[0, 2] - R[2, 0]) * s
            x = (R[0, 1] + R[1, 0]) * s
            z = (R[1, 2] + R[2, 1]) * s
        else:
            z = 0.5 * math.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
            s = 0.25 / z
            w = (R[1, 0] - R[0, 1]) * s
            x = (R[0, 2] + R[2, 0]) * s
            y = (R[1, 2] + R[2, 1]) * s

        return Quaternion(w=float(w), x=float(x), y=float(y), z=float(z)).normalized()

    @staticmethod
    def to_euler(q: Quaternion) -> EulerAngles:
        """Roll, pitch and yaw (ZYX convention, radians) of a unit quaternion."""
        w, x, y, z = q.w, q.x, q.y, q.z

        roll = math.atan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
        # Rounding can push |sinp| past 1 at +/-90 deg pitch.
        sinp = max(-1.0, min(1.0, 2.0 * (w * y - z * x)))
        pitch = math.asin(sinp)
        yaw = math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))

        return EulerAngles(roll=roll, pitch=pitch, yaw=yaw)

    @staticmethod
    def from_euler(euler: EulerAngles) -> Quaternion:
        """Convert ZYX Euler angles to a unit quaternion."""
        cr, sr = math.cos(euler.roll / 2), math.sin(euler.roll / 2)
        cp, sp = math.cos(euler.pitch / 2), math.sin(euler.pitch / 2)
        cy, sy = math.cos(euler.yaw / 2), math.sin(euler.yaw / 2)

        return Quaternion(
            w=cr * cp * cy + sr * sp * sy,
            x=sr * cp * cy - cr * sp * sy,
            y=cr * sp * cy + sr * cp * sy,
            z=cr * cp * sy - sr * sp * cy,
        )

    @staticmethod
    def from_acc_mag(acc: Vector3, mag: Vector3) -> Quaternion:
        """Compute orientation from accelerometer and magnetometer.

        Builds the reference axes in body coordinates: z along the
        measured gravity reaction (up), x along the horizontal component
        of the magnetic field, y completing the right-handed frame.

        Args:
            acc: Accelerometer reading, any unit.
            mag: Magnetometer reading, any unit.

        Returns:
            Orientation quaternion (body to reference).

        Raises:
            ZeroNormInput: If either vector is zero or the field is
                parallel to gravity.
        """
        z_axis = acc.normalized()
        y_axis = z_axis.cross(mag.normalized()).normalized()
        x_axis = y_axis.cross(z_axis)

        R = np.array([
            [x_axis.x, x_axis.y, x_axis.z],
            [y_axis.x, y_axis.y, y_axis.z],
            [z_axis.x, z_axis.y, z_axis.z],
        ], dtype=np.float64)
        return QuaternionOps.from_rotation_matrix(R)

    @staticmethod
    def angle_between(q1: Quaternion, q2: Quaternion) -> float:
        """Rotation angle in radians taking q1 to q2, in [0, pi].

        q and -q describe the same orientation and give an angle of zero.
        """
        diff = QuaternionOps.multiply(q2, QuaternionOps.conjugate(q1))
        return 2.0 * math.atan2(diff.vector.norm, abs(diff.w))

    @staticmethod
    def slerp(q1: Quaternion, q2: Quaternion, t: float) -> Quaternion:
        """Spherical linear interpolation along the shorter arc.

        Args:
            q1: Start quaternion (t = 0).
            q2: End quaternion (t = 1).
            t: Interpolation parameter in [0, 1].

        Returns:
            Interpolated unit quaternion.
        """
        dot = q1.w * q2.w + q1.x * q2.x + q1.y * q2.y + q1.z * q2.z
        if dot < 0.0:
            q2, dot = -q2, -dot

        if dot > 0.9995:
            return (q1 + (q2 - q1) * t).normalized()

        theta = math.acos(dot)
        sin_theta = math.sin(theta)
        return (q1 * (math.sin((1.0 - t) * theta) / sin_theta)
                + q2 * (math.sin(t * theta) / sin_theta))
