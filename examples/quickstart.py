from __future__ import annotations


def main() -> None:
    # [START README_QUICKSTART]
    from vanilla_local_vol import VanillaLocalVolModel, Wing
    from vanilla_local_vol.diagnostics import grid_frame, payoff_frame

    model = VanillaLocalVolModel.from_levels(
        T=1.0,
        S0=100.0,
        sigma_atm=20.0,
        Sp=[110.0, 125.0, 150.0],
        Sm=[90.0, 75.0, 50.0],
        Mp=[0.02, 0.05, 0.05],
        Mm=[-0.03, -0.06, -0.06],
        max_calibration_iters=20,
    )

    print("converged:", model.converged, model.calibration.summary)
    print("mu, sigma0:", model.mu, model.sigma0)
    print("alpha, nu:", model.alpha, model.nu)
    print("forward:", model.model_forward())
    print("call 110:", model.expectation(Wing.RIGHT, 110.0))
    print("put 90:", model.expectation(Wing.LEFT, 90.0))

    print(grid_frame(model))
    print(payoff_frame(model, [80.0, 90.0, 100.0, 110.0, 120.0]))
    # [END README_QUICKSTART]


if __name__ == "__main__":
    main()
