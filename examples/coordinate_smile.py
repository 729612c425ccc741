from __future__ import annotations


def main() -> None:
    # [START README_COORDINATES]
    import logging

    from vanilla_local_vol import CalibrationConfig, VanillaLocalVolModel
    from vanilla_local_vol.diagnostics import calibration_frame
    from vanilla_local_vol.diagnostics.plots import plot_level_map, plot_local_vol
    from vanilla_local_vol.logging import configure_logging

    configure_logging(logging.DEBUG, handlers=[logging.StreamHandler()])

    cfg = CalibrationConfig(
        max_calibration_iters=25,
        only_forward_calibration_iters=2,
        enable_logging=True,
        extrapolation_stdevs=6.0,
    )
    model = VanillaLocalVolModel.from_coordinates(
        T=0.5,
        S0=100.0,
        sigma_atm=15.0,
        Xp=[0.25, 0.5, 1.0, 2.0],
        Xm=[-0.25, -0.5, -1.0, -2.0],
        Mp=[0.02, 0.04, 0.06, 0.06],
        Mm=[-0.03, -0.05, -0.08, -0.08],
        config=cfg,
    )

    print(calibration_frame(model.calibration))
    for rec in model.logging():
        print(rec)

    fig, ax = plot_local_vol(model)
    fig2, ax2 = plot_level_map(model)
    fig.savefig("local_vol.png", dpi=120)
    fig2.savefig("level_map.png", dpi=120)
    # [END README_COORDINATES]


if __name__ == "__main__":
    main()
