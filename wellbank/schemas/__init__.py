from wellbank.schemas.auth import (
    SaveStepRequest,
    RegistrationStateRequest,
    ResumeRegistrationRequest,
    ClearRegistrationRequest,
    RegistrationStateData,
    OtpSendRequest,
    OtpVerifyRequest,
    CompleteRegistrationRequest,
    LoginRequest,
    RefreshTokenRequest,
    UserResponse,
)
