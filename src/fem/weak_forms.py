"""Weak forms of the bootstrap (Stokes) and coupled FSI problems.

All kernels are vectorized over the cells of a domain. Notation used in
the einsum strings:

    c : cell        q : quadrature point
    a : test basis  b : trial basis
    k : test comp.  l : trial comp.
    i, j, m : spatial indices

With test function N_a e_k, the gradient is e_k (x) B_a, so a term
``sigma : grad(phi)`` becomes ``sum_j sigma[k, j] B_a[j]``.

The mesh motion of the fluid region is selected through ``MeshStrategy``.
Each strategy supplies the stress of the mesh-motion operator and its
derivative; every kernel of the FSI and bootstrap problems is built from
those two functions.
"""

from enum import Enum
from functools import partial

import numpy as np

from utilities.exceptions import ConfigurationError

from .assembly.operators import FETerm


# ========================================================
# Material helpers
# ========================================================


def lame_parameters(E: float, nu: float):
    """Lame parameters (lambda, mu) from Young's modulus and Poisson's ratio."""
    lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
    mu = E / (2.0 * (1.0 + nu))
    return lam, mu


def _sym(G):
    return 0.5 * (G + np.swapaxes(G, -1, -2))


def _trace(G):
    return np.trace(G, axis1=-2, axis2=-1)


def _identity_like(G):
    return np.broadcast_to(np.eye(G.shape[-1]), G.shape)


def _forcing(params, key, state, dim):
    """Evaluate an optional source ``params[key](x, t)`` at the quadrature points."""
    f = params.get(key)
    if f is None:
        return 0.0
    n_cells, n_q = state.points.shape[:2]
    values = np.asarray(f(state.points.reshape(-1, dim), state.t), dtype=float)
    return np.broadcast_to(values, (n_cells * n_q, dim)).reshape(n_cells, n_q, dim)


def _vector_mass(w, N, dim, coeff=1.0):
    m = coeff * np.einsum("cq,cqa,cqb->cab", w, N, N)
    return np.einsum("cab,kl->cakbl", m, np.eye(dim))


def _viscous_block(w, B, mu):
    """Derivative of 2 mu eps(v) : eps(phi) with respect to v."""
    dim = B.shape[-1]
    K = mu * np.einsum("cq,cqal,cqbk->cakbl", w, B, B)
    K += mu * np.einsum("cab,kl->cakbl", np.einsum("cq,cqaj,cqbj->cab", w, B, B), np.eye(dim))
    return K


def _stabilization_weights(params):
    """Per-cell pressure stabilization tau_K = beta |K| / mu_f."""
    return params["stab"] * np.asarray(params["vol"]) / params["mu_f"]


# ========================================================
# Mesh motion strategies
# ========================================================


class MeshStrategy(Enum):
    """Operator moving the fluid mesh with the solid displacement."""

    LINEAR_ELASTICITY = "linearElasticity"
    LAPLACIAN = "laplacian"

    @classmethod
    def parse(cls, value) -> "MeshStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(
                "strategy", f"unknown mesh strategy {value!r}, expected one of {[s.value for s in cls]}"
            ) from None


class LinearElasticMotion:
    """sigma_m(u) = lambda_m tr(eps(u)) I + 2 mu_m eps(u)."""

    def stress(self, G, params):
        lam, mu = params["lam_m"], params["mu_m"]
        return lam * _trace(G)[..., None, None] * _identity_like(G) + 2.0 * mu * _sym(G)

    def stress_derivative(self, B, params):
        """sigma_m(N_b e_l)[k, j], shape (n_cells, n_q, n_basis, l, k, j)."""
        lam, mu = params["lam_m"], params["mu_m"]
        I = np.eye(B.shape[-1])
        dS = lam * np.einsum("cqbl,kj->cqblkj", B, I)
        dS += mu * np.einsum("kl,cqbj->cqblkj", I, B)
        dS += mu * np.einsum("jl,cqbk->cqblkj", I, B)
        return dS


class LaplacianMotion:
    """sigma_m(u) = grad(u)."""

    def stress(self, G, params):
        return G

    def stress_derivative(self, B, params):
        return np.einsum("kl,cqbj->cqblkj", np.eye(B.shape[-1]), B)


# ========================================================
# Bootstrap (Stokes) kernels on the fluid region
# ========================================================


def stokes_residual(motion, state, basis, params):
    w, N, B = basis.weights, basis.shape, basis.grad
    dim = B.shape[-1]
    u_grad, v_grad = state.grads["u"], state.grads["v"]
    p, p_grad = state.values["p"][..., 0], state.grads["p"][..., 0, :]
    mu_f = params["mu_f"]
    tau = _stabilization_weights(params)

    r_u = np.einsum("cq,cqkj,cqaj->cak", w, motion.stress(u_grad, params), B)

    stress = 2.0 * mu_f * _sym(v_grad) - p[..., None, None] * _identity_like(v_grad)
    f = _forcing(params, "f_v", state, dim)
    r_v = np.einsum("cq,cqkj,cqaj->cak", w, stress, B)
    r_v -= np.einsum("cq,cqk,cqa->cak", w, np.broadcast_to(f, state.values["v"].shape), N)

    r_p = np.einsum("cq,cq,cqa->ca", w, _trace(v_grad), N)
    r_p += np.einsum("cq,cqj,cqaj->ca", w * tau[:, None], p_grad, B)
    r_p += params["pressure_penalty"] / mu_f * np.einsum("cq,cq,cqa->ca", w, p, N)

    return {"u": r_u, "v": r_v, "p": r_p[..., None]}


def stokes_jacobian(motion, state, basis, params):
    w, N, B = basis.weights, basis.shape, basis.grad
    mu_f = params["mu_f"]
    tau = _stabilization_weights(params)

    K_uu = np.einsum("cq,cqblkj,cqaj->cakbl", w, motion.stress_derivative(B, params), B)
    return {
        ("u", "u"): K_uu,
        ("v", "v"): _viscous_block(w, B, mu_f),
        **_pressure_blocks(w, N, B, tau, params["pressure_penalty"] / mu_f),
    }


def _pressure_blocks(w, N, B, tau, penalty):
    """Blocks of -p div(phi) + q div(v) + tau grad(p).grad(q) + penalty p q."""
    K_vp = -np.einsum("cq,cqak,cqb->cakb", w, B, N)[..., None]
    K_pv = np.einsum("cq,cqa,cqbl->cabl", w, N, B)[:, :, None]
    K_pp = np.einsum("cq,cqaj,cqbj->cab", w * tau[:, None], B, B)
    K_pp += penalty * np.einsum("cq,cqa,cqb->cab", w, N, N)
    return {
        ("v", "p"): K_vp,
        ("p", "v"): K_pv,
        ("p", "p"): K_pp[:, :, None, :, None],
    }


# ========================================================
# FSI kernels: fluid region (ALE Navier-Stokes)
# ========================================================


def fluid_residual(motion, state, basis, params):
    w, N, B = basis.weights, basis.shape, basis.grad
    dim = B.shape[-1]
    u_grad = state.grads["u"]
    v, v_grad = state.values["v"], state.grads["v"]
    p, p_grad = state.values["p"][..., 0], state.grads["p"][..., 0, :]
    ut, vt = state.values_t["u"], state.values_t["v"]
    rho, mu_f = params["rho_f"], params["mu_f"]
    alpha = 1.0 / np.asarray(params["vol"])
    tau = _stabilization_weights(params)

    r_u = np.einsum("cq,cqkj,cqaj->cak", w * alpha[:, None], motion.stress(u_grad, params), B)

    convection = np.einsum("cqkj,cqj->cqk", v_grad, v - ut)
    inertia = rho * (vt + convection) - _forcing(params, "f_v", state, dim)
    stress = 2.0 * mu_f * _sym(v_grad) - p[..., None, None] * _identity_like(v_grad)
    r_v = np.einsum("cq,cqk,cqa->cak", w, inertia, N)
    r_v += np.einsum("cq,cqkj,cqaj->cak", w, stress, B)

    r_p = np.einsum("cq,cq,cqa->ca", w, _trace(v_grad), N)
    r_p += np.einsum("cq,cqj,cqaj->ca", w * tau[:, None], p_grad, B)
    r_p += params["pressure_penalty"] / mu_f * np.einsum("cq,cq,cqa->ca", w, p, N)

    return {"u": r_u, "v": r_v, "p": r_p[..., None]}


def fluid_jacobian(motion, state, basis, params):
    w, N, B = basis.weights, basis.shape, basis.grad
    dim = B.shape[-1]
    v, v_grad = state.values["v"], state.grads["v"]
    ut = state.values_t["u"]
    rho, mu_f = params["rho_f"], params["mu_f"]
    alpha = 1.0 / np.asarray(params["vol"])
    tau = _stabilization_weights(params)

    K_uu = np.einsum(
        "cq,cqblkj,cqaj->cakbl", w * alpha[:, None], motion.stress_derivative(B, params), B
    )

    # ((dv . grad) v + ((v - ut) . grad) dv) . phi
    c = v - ut
    K_vv = rho * np.einsum("cq,cqa,cqkl,cqb->cakbl", w, N, v_grad, N)
    K_vv += rho * np.einsum(
        "cab,kl->cakbl", np.einsum("cq,cqa,cqj,cqbj->cab", w, N, c, B), np.eye(dim)
    )
    K_vv += _viscous_block(w, B, mu_f)

    return {
        ("u", "u"): K_uu,
        ("v", "v"): K_vv,
        **_pressure_blocks(w, N, B, tau, params["pressure_penalty"] / mu_f),
    }


def fluid_jacobian_t(motion, state, basis, params):
    w, N = basis.weights, basis.shape
    dim = basis.grad.shape[-1]
    rho = params["rho_f"]
    v_grad = state.grads["v"]
    return {
        ("v", "v"): _vector_mass(w, N, dim, rho),
        ("v", "u"): -rho * np.einsum("cq,cqa,cqkl,cqb->cakbl", w, N, v_grad, N),
    }


# ========================================================
# FSI kernels: solid region (St. Venant-Kirchhoff)
# ========================================================


def _stvk(u_grad, lam, mu):
    """Deformation gradient F, second Piola-Kirchhoff stress S and P = F S."""
    I = _identity_like(u_grad)
    F = I + u_grad
    E = 0.5 * (np.einsum("cqmi,cqmj->cqij", F, F) - I)
    S = lam * _trace(E)[..., None, None] * I + 2.0 * mu * E
    P = np.einsum("cqim,cqmj->cqij", F, S)
    return F, S, P


def solid_residual(motion, state, basis, params):
    w, N, B = basis.weights, basis.shape, basis.grad
    dim = B.shape[-1]
    v = state.values["v"]
    ut, vt = state.values_t["u"], state.values_t["v"]
    _, _, P = _stvk(state.grads["u"], params["lam_s"], params["mu_s"])

    kinematics = ut - v - _forcing(params, "f_u", state, dim)
    r_u = np.einsum("cq,cqk,cqa->cak", w, kinematics, N)

    inertia = params["rho_s"] * vt - _forcing(params, "f_v", state, dim)
    r_v = np.einsum("cq,cqk,cqa->cak", w, inertia, N)
    r_v += np.einsum("cq,cqkj,cqaj->cak", w, P, B)

    return {"u": r_u, "v": r_v}


def solid_jacobian(motion, state, basis, params):
    w, N, B = basis.weights, basis.shape, basis.grad
    dim = B.shape[-1]
    lam, mu = params["lam_s"], params["mu_s"]
    F, S, _ = _stvk(state.grads["u"], lam, mu)

    FB = np.einsum("cqim,cqbm->cqbi", F, B)
    FFt = np.einsum("cqkm,cqlm->cqkl", F, F)
    BB = np.einsum("cqaj,cqbj->cqab", B, B)

    # Geometric stiffness plus material stiffness of dP = dF S + F dS
    geometric = np.einsum("cq,cqbm,cqmj,cqaj->cab", w, B, S, B)
    K_vu = np.einsum("cab,kl->cakbl", geometric, np.eye(dim))
    K_vu += lam * np.einsum("cq,cqak,cqbl->cakbl", w, FB, FB)
    K_vu += mu * np.einsum("cq,cqkl,cqab->cakbl", w, FFt, BB)
    K_vu += mu * np.einsum("cq,cqbk,cqal->cakbl", w, FB, FB)

    return {
        ("v", "u"): K_vu,
        ("u", "v"): -_vector_mass(w, N, dim),
    }


def solid_jacobian_t(motion, state, basis, params):
    w, N = basis.weights, basis.shape
    dim = basis.grad.shape[-1]
    return {
        ("u", "u"): _vector_mass(w, N, dim),
        ("v", "v"): _vector_mass(w, N, dim, params["rho_s"]),
    }


# ========================================================
# FSI kernels: interface
# ========================================================


def interface_residual(motion, state, basis, params):
    w, N, n = basis.weights, basis.shape, basis.normals
    alpha = 1.0 / np.asarray(params["vol"])
    traction = np.einsum("cqkj,cqj->cqk", motion.stress(state.grads["u"], params), n)
    return {"u": -np.einsum("cq,cqk,cqa->cak", w * alpha[:, None], traction, N)}


def interface_jacobian(motion, state, basis, params):
    w, N, B, n = basis.weights, basis.shape, basis.grad, basis.normals
    alpha = 1.0 / np.asarray(params["vol"])
    dS = motion.stress_derivative(B, params)
    K_uu = -np.einsum("cq,cqa,cqblkj,cqj->cakbl", w * alpha[:, None], N, dS, n)
    return {("u", "u"): K_uu}


# ========================================================
# Kernel table
# ========================================================


class WeakForms:
    """All terms of the bootstrap and FSI problems for one mesh motion."""

    def __init__(self, motion):
        self.motion = motion

    def _bind(self, kernel, params):
        return partial(kernel, self.motion, params=params)

    def stokes(self, domain, params) -> FETerm:
        return FETerm(
            residual=self._bind(stokes_residual, params),
            jacobian=self._bind(stokes_jacobian, params),
            domain=domain,
        )

    def fluid(self, domain, params) -> FETerm:
        return FETerm(
            residual=self._bind(fluid_residual, params),
            jacobian=self._bind(fluid_jacobian, params),
            jacobian_t=self._bind(fluid_jacobian_t, params),
            domain=domain,
        )

    def solid(self, domain, params) -> FETerm:
        return FETerm(
            residual=self._bind(solid_residual, params),
            jacobian=self._bind(solid_jacobian, params),
            jacobian_t=self._bind(solid_jacobian_t, params),
            domain=domain,
        )

    def interface(self, domain, params) -> FETerm:
        return FETerm(
            residual=self._bind(interface_residual, params),
            jacobian=self._bind(interface_jacobian, params),
            domain=domain,
        )


WEAK_FORMS = {
    MeshStrategy.LINEAR_ELASTICITY: WeakForms(LinearElasticMotion()),
    MeshStrategy.LAPLACIAN: WeakForms(LaplacianMotion()),
}


def weak_forms(strategy) -> WeakForms:
    """Weak forms of a mesh strategy (enum member or its string value)."""
    return WEAK_FORMS[MeshStrategy.parse(strategy)]
