"""Data types for AHRS orientation filtering."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import math

import numpy as np
from numpy.typing import NDArray

from .errors import DegenerateQuaternion, ZeroNormInput

# Norms at or below this are treated as zero.
ZERO_NORM_EPSILON = 1e-12


@dataclass(frozen=True)
class Vector3:
    """Three-component vector.

    Used for gyroscope readings (rad/s) and for accelerometer and
    magnetometer readings (any consistent unit, normalized before use).
    """
    x: float
    y: float
    z: float

    @classmethod
    def zero(cls) -> "Vector3":
        """Return the zero vector."""
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, arr: Iterable[float]) -> "Vector3":
        """Create from a sequence or numpy array [x, y, z]."""
        x, y, z = (float(v) for v in arr)
        return cls(x, y, z)

    def to_array(self) -> NDArray[np.float64]:
        """Convert to numpy array [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector3":
        if isinstance(scalar, (Vector3, Quaternion)):
            return NotImplemented
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def dot(self, other: "Vector3") -> float:
        """Scalar product."""
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3") -> "Vector3":
        """Vector product self x other."""
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    @property
    def norm(self) -> float:
        """Euclidean norm."""
        return math.hypot(self.x, self.y, self.z)

    def is_finite(self) -> bool:
        """Check all components are finite."""
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))

    def normalized(self) -> "Vector3":
        """Return the unit vector in the same direction.

        Raises:
            ZeroNormInput: If the norm is zero, near zero or non-finite.
        """
        n = self.norm
        if not math.isfinite(n) or n <= ZERO_NORM_EPSILON:
            raise ZeroNormInput(f"Cannot normalize vector with norm {n!r}")
        return Vector3(self.x / n, self.y / n, self.z / n)


@dataclass(frozen=True)
class Quaternion:
    """Quaternion representing orientation.

    Convention: [w, x, y, z] where w is the scalar component. The
    quaternion rotates body-frame vectors into the reference frame.
    """
    w: float
    x: float
    y: float
    z: float

    @classmethod
    def identity(cls) -> "Quaternion":
        """Return identity quaternion (no rotation)."""
        return cls(w=1.0, x=0.0, y=0.0, z=0.0)

    @classmethod
    def from_array(cls, arr: NDArray[np.float64]) -> "Quaternion":
        """Create from numpy array [w, x, y, z]."""
        return cls(w=float(arr[0]), x=float(arr[1]),
                   y=float(arr[2]), z=float(arr[3]))

    @classmethod
    def from_vector(cls, v: Vector3, w: float = 0.0) -> "Quaternion":
        """Create from a scalar part and a vector part."""
        return cls(w=w, x=v.x, y=v.y, z=v.z)

    @classmethod
    def from_axis_angle(cls, axis: Vector3, angle: float) -> "Quaternion":
        """Rotation of `angle` radians about `axis`.

        Raises:
            ZeroNormInput: If the axis is the zero vector.
        """
        u = axis.normalized()
        s = math.sin(angle / 2.0)
        return cls(w=math.cos(angle / 2.0), x=u.x * s, y=u.y * s, z=u.z * s)

    def to_array(self) -> NDArray[np.float64]:
        """Convert to numpy array [w, x, y, z]."""
        return np.array([self.w, self.x, self.y, self.z], dtype=np.float64)

    @property
    def vector(self) -> Vector3:
        """Vector part [x, y, z]."""
        return Vector3(self.x, self.y, self.z)

    def __add__(self, other: "Quaternion") -> "Quaternion":
        return Quaternion(w=self.w + other.w, x=self.x + other.x,
                          y=self.y + other.y, z=self.z + other.z)

    def __sub__(self, other: "Quaternion") -> "Quaternion":
        return Quaternion(w=self.w - other.w, x=self.x - other.x,
                          y=self.y - other.y, z=self.z - other.z)

    def __mul__(self, scalar: float) -> "Quaternion":
        if isinstance(scalar, (Vector3, Quaternion)):
            return NotImplemented
        return Quaternion(w=self.w * scalar, x=self.x * scalar,
                          y=self.y * scalar, z=self.z * scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "Quaternion":
        return Quaternion(w=-self.w, x=-self.x, y=-self.y, z=-self.z)

    @property
    def norm(self) -> float:
        """Euclidean norm of quaternion."""
        return math.hypot(self.w, self.x, self.y, self.z)

    def is_valid(self, tolerance: float = 0.01) -> bool:
        """Check if quaternion is unit quaternion within tolerance."""
        return self.is_finite() and abs(self.norm - 1.0) <= tolerance

    def is_finite(self) -> bool:
        """Check all components are finite."""
        return all(math.isfinite(v) for v in (self.w, self.x, self.y, self.z))

    def normalized(self) -> "Quaternion":
        """Return normalized copy.

        Raises:
            DegenerateQuaternion: If the norm is zero, near zero or
                non-finite.
        """
        n = self.norm
        if not math.isfinite(n) or n <= ZERO_NORM_EPSILON:
            raise DegenerateQuaternion(f"Cannot normalize quaternion with norm {n!r}")
        return Quaternion(w=self.w/n, x=self.x/n, y=self.y/n, z=self.z/n)


@dataclass(frozen=True)
class EulerAngles:
    """Roll, pitch and yaw in radians, ZYX intrinsic order.

    Yaw is measured from the reference x axis, which is the horizontal
    field direction when a magnetometer is fused.
    """
    roll: float
    pitch: float
    yaw: float

    @property
    def roll_deg(self) -> float:
        return math.degrees(self.roll)

    @property
    def pitch_deg(self) -> float:
        return math.degrees(self.pitch)

    @property
    def yaw_deg(self) -> float:
        return math.degrees(self.yaw)


@dataclass(frozen=True)
class ImuReading:
    """Single IMU sample handed to the estimator.

    Gyroscope in rad/s. Accelerometer and magnetometer in any consistent
    unit; the magnetometer fields are None when no magnetometer sample
    accompanies the reading.
    """
    seq: int
    timestamp: float  # Seconds, caller's clock
    gx: float
    gy: float
    gz: float
    ax: float
    ay: float
    az: float
    mx: Optional[float] = None
    my: Optional[float] = None
    mz: Optional[float] = None

    @property
    def gyr(self) -> Vector3:
        """Gyroscope vector [gx, gy, gz]."""
        return Vector3(self.gx, self.gy, self.gz)

    @property
    def acc(self) -> Vector3:
        """Accelerometer vector [ax, ay, az]."""
        return Vector3(self.ax, self.ay, self.az)

    @property
    def has_mag(self) -> bool:
        """Whether a magnetometer sample is present."""
        return None not in (self.mx, self.my, self.mz)

    @property
    def mag(self) -> Optional[Vector3]:
        """Magnetometer vector [mx, my, mz], or None."""
        if not self.has_mag:
            return None
        return Vector3(self.mx, self.my, self.mz)


@dataclass
class FusionState:
    """Orientation snapshot produced by the estimator."""
    quaternion: Quaternion
    euler: EulerAngles
    timestamp: float
    iteration: int
    mode: str  # "marg" or "imu"
    is_valid: bool = True
    mag_trust: float = 1.0
    quaternion_norm: float = 1.0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Flat JSON-friendly dictionary; angles in degrees."""
        q, e = self.quaternion, self.euler
        data = {
            "iteration": self.iteration,
            "timestamp": self.timestamp,
            "mode": self.mode,
            "valid": self.is_valid,
            "qw": q.w, "qx": q.x, "qy": q.y, "qz": q.z,
            "roll": e.roll_deg, "pitch": e.pitch_deg, "yaw": e.yaw_deg,
            "q_norm": self.quaternion_norm,
            "mag_trust": self.mag_trust,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ValidationResult:
    """Errors make a result invalid; warnings are informational."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
